"""All prompt templates for the analysis pipeline."""

import json

from models.schemas.initial_extraction import InitialExtraction
from models.schemas.job_description import RawJobDescription, StructuredJobDescription

CHUNK_SUMMARY_PROMPT = (
    "You are a resume preprocessing assistant. Extract and preserve key information "
    "including skills, job titles, employment dates, education, and quantifiable "
    "achievements. Maintain all relevant keywords, technical skills, and metrics."
)

FALLBACK_SUMMARY_PROMPT = "Extract only the most important information from this resume text."

EXTRACTION_SYSTEM_PROMPT = """Extract the following information from this resume:
1. A list of technical skills
2. A list of soft skills
3. A list of all important keywords
4. Key achievements with metrics
5. Educational qualifications
6. Employment history summary

Format as JSON with these exact fields:
{
  "technicalSkills": [],
  "softSkills": [],
  "keywords": [],
  "achievements": [],
  "education": [],
  "experience": []
}"""

JOB_DESCRIPTION_PROMPT = """You are an expert job description analyzer. Parse the provided job description text into a structured format, identifying key components like title, experience requirements, and skills.

Follow these rules:
1. Extract information only if it's explicitly stated or strongly implied
2. Leave fields empty if information is not found
3. For years of experience, include any range or minimum requirement mentioned
4. For skills, include both technical and soft skills mentioned
5. Keep the summary concise but informative
6. Include only clear, explicit requirements in the requirements array

Return ONLY a JSON object with the following structure:
{
  "roleTitle": "Extracted job title",
  "yearsOfExperience": "Extracted experience requirement",
  "industry": "Identified industry",
  "companyName": "Company name if mentioned",
  "primaryKeywords": ["Key terms", "and phrases"],
  "summary": "Brief job summary",
  "requirements": ["Requirement 1", "Requirement 2"],
  "skills": ["Skill 1", "Skill 2"]
}"""

_SCORES_BLOCK = """  "scores": {
    "keywordsRelevance": {
      "score": (1-10),
      "maxScore": 10,
      "feedback": "%(keywords_feedback)s",
      "keywords": ["%(keywords_items)s"]
    },
    "achievementsMetrics": {
      "score": (1-10),
      "maxScore": 10,
      "feedback": "%(achievements_feedback)s",
      "highlights": ["%(achievements_items)s"]
    },
    "structureReadability": {
      "score": (1-10),
      "maxScore": 10,
      "feedback": "analysis of resume structure"
    },
    "summaryClarity": {
      "score": (1-10),
      "maxScore": 10,
      "feedback": "analysis of professional summary"
    },
    "overallPolish": {
      "score": (1-10),
      "maxScore": 10,
      "feedback": "analysis of overall presentation"
    }
  },"""

_SCORING_RULES = """SCORING RULES (follow strictly):
- Score conservatively. Most resumes land between 60 and 75; go above 80 only for exceptional, metric-rich content.
- Category scores are integers from 1 to 10 and maxScore is always 10.
- Every array must be filled with real content taken from the resume. Never leave an array empty when the resume has relevant content.
- Feedback must reference specific lines, skills, or sections of the resume, not generic advice.
- Return valid JSON only, with no markdown and no commentary."""

RESUME_ANALYSIS_PROMPT = """You are an expert resume analyzer. Provide a complete analysis in JSON format containing these fields:
{
  "score": (overall score 0-100),
%(scores)s
  "identifiedSkills": ["technical and soft skills"],
  "primaryKeywords": ["important keywords and terms"],
  "suggestedImprovements": ["specific improvements needed"],
  "generalFeedback": {
    "overall": "analysis of strengths and weaknesses"
  }
}

%(rules)s""" % {
    "scores": _SCORES_BLOCK % {
        "keywords_feedback": "analysis of keyword usage",
        "keywords_items": "all relevant keywords",
        "achievements_feedback": "analysis of achievements",
        "achievements_items": "key achievements",
    },
    "rules": _SCORING_RULES,
}

JOB_ANALYSIS_PROMPT = """You are an expert resume analyzer comparing a resume to a job description. Provide a complete analysis in JSON format:
{
  "score": (overall match score 0-100),
%(scores)s
  "identifiedSkills": ["skills found in resume"],
  "primaryKeywords": ["important keywords found in resume"],
  "suggestedImprovements": ["specific improvements needed for this job"],
  "generalFeedback": {
    "overall": "analysis of overall match"
  },
  "jobAnalysis": {
    "alignmentAndStrengths": ["areas where resume aligns well with job"],
    "gapsAndConcerns": ["missing skills or experience needed for job"],
    "recommendationsToTailor": ["how to better target resume to this job"],
    "overallFit": "summary of how well resume matches job requirements"
  }
}

%(rules)s

JOB MATCH RULES:
- Every jobAnalysis array must contain 3-5 concrete, actionable items that name actual skills, tools, or requirements. Never use generic placeholders.
- When the match is poor (score below 70), be maximally specific about which requirements are missing and how much experience is lacking.
- overallFit must give an explicit fit estimate (for example "roughly 55%% of the core requirements are met") and a clear recommendation: keep tailoring this resume for the role, or look for roles that fit better.""" % {
    "scores": _SCORES_BLOCK % {
        "keywords_feedback": "analysis of keyword alignment",
        "keywords_items": "matching keywords",
        "achievements_feedback": "analysis of achievements relevance",
        "achievements_items": "relevant achievements",
    },
    "rules": _SCORING_RULES,
}


def select_system_prompt(has_job_description: bool) -> str:
    return JOB_ANALYSIS_PROMPT if has_job_description else RESUME_ANALYSIS_PROMPT


def render_job_description(job_description: RawJobDescription | StructuredJobDescription) -> str:
    """Job description section of the stage 2 user prompt."""
    if isinstance(job_description, RawJobDescription):
        return f"""Job Description:
{job_description.text}"""

    jd = job_description
    requirements = "\n".join(jd.requirements) or "None specified"
    return f"""Job Details:
Role: {jd.role_title or 'Not specified'}
Experience Required: {jd.years_of_experience or 'Not specified'}
Industry: {jd.industry or 'Not specified'}
Company: {jd.company_name or 'Not specified'}
Required Skills: {', '.join(jd.skills) or 'Not specified'}

Key Requirements:
{requirements}"""


def build_analysis_prompt(
    resume_text: str,
    extraction: InitialExtraction,
    job_description: RawJobDescription | StructuredJobDescription | None = None,
) -> str:
    """Stage 2 user content: resume, stage 1 facts, and the job if any."""
    initial = json.dumps(extraction.model_dump(by_alias=True), indent=2)
    prompt = f"""Resume Content:
{resume_text}

Initial Analysis:
{initial}
"""
    if job_description is None:
        prompt += """
Provide a comprehensive evaluation of this resume based on the initial analysis and full content.
"""
    else:
        prompt += f"""
{render_job_description(job_description)}

Compare this resume with the job description and provide a comprehensive evaluation.
"""
    return prompt
