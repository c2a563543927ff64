"""Turn raw stage 2 model output into a schema-valid AnalysisResult.

Model content problems are never surfaced as errors. Missing fields are
backfilled from the stage 1 extraction or fixed defaults, and unparseable
output becomes a neutral fallback result.
"""

import json
import logging
import math
import re
from typing import Any

from pydantic import ValidationError

from models.responses import AnalysisResult, JobAnalysis
from models.schemas.initial_extraction import InitialExtraction
from models.schemas.job_description import RawJobDescription, StructuredJobDescription
from services.errors import ValidationBugError
from services.gemini_client import strip_code_fences

logger = logging.getLogger(__name__)

FALLBACK_SCORE = 50
MIDPOINT_CATEGORY_SCORE = 5

CATEGORY_KEYS = (
    "keywordsRelevance",
    "achievementsMetrics",
    "structureReadability",
    "summaryClarity",
    "overallPolish",
)

DEFAULT_IMPROVEMENTS = [
    "Add more quantifiable achievements to showcase your impact",
    "Improve your skills section with more relevant technologies",
    "Ensure your resume summary clearly communicates your value proposition",
    "Use more industry-specific keywords throughout your resume",
]

DEFAULT_OVERALL_FEEDBACK = (
    "Your resume shows your experience and skills, but could benefit from more "
    "specific achievements and clearer formatting. Consider tailoring it more "
    "specifically to your target roles and highlighting your unique value proposition."
)

DEFAULT_CATEGORY_FEEDBACK = "No detailed feedback was generated for this category."

ERROR_CATEGORY_FEEDBACK = "Analysis encountered an error; this score is a neutral placeholder."

ERROR_IMPROVEMENTS = [
    "Try analyzing your resume again in a few minutes",
    "Check that your resume is formatted with clear section headings",
    "Make sure skills, job titles, and dates are written out as plain text",
]

ERROR_OVERALL_FEEDBACK = (
    "We encountered an error analyzing your resume. This might be due to temporary "
    "service limitations or issues with the resume format. The scores shown are "
    "neutral placeholders, not an assessment of your resume."
)

TAILORING_RECOMMENDATIONS = [
    "Tailor your resume to highlight experience relevant to this position",
    "Incorporate keywords from the job description into your skills and experience sections",
    "Quantify achievements that demonstrate skills mentioned in the job posting",
    "Mirror the job title and core requirements in your professional summary where truthful",
]

FALLBACK_JOB_ANALYSIS = {
    "alignmentAndStrengths": [
        "We could not verify specific matches; review the job's required skills and confirm which ones your resume lists explicitly.",
    ],
    "gapsAndConcerns": [
        "A detailed gap analysis could not be generated; compare each listed requirement against your experience section.",
    ],
    "recommendationsToTailor": [
        "Try the analysis again with the full job description",
        "Ensure your resume highlights the skills mentioned in the job posting",
        "Format your resume with clear sections so it can be analyzed reliably",
    ],
    "overallFit": (
        "We encountered a problem analyzing your fit for this job, so no fit estimate "
        "is available. Please try again shortly before deciding whether to keep tailoring "
        "this resume for the role."
    ),
}

MAX_JOB_ITEMS = 5

_TOKEN_SPLIT_RE = re.compile(r"[,;\n|/•·]+|\s+-\s+|\band\b|\bor\b", re.IGNORECASE)
_TOKEN_STRIP = " \t\r.:*-()[]\"'"


# --- Fallback ---------------------------------------------------------------


def build_fallback_result(job_description_provided: bool) -> AnalysisResult:
    """Neutral, schema-valid result used when no usable model answer exists."""
    def category(**extra: Any) -> dict[str, Any]:
        return {
            "score": MIDPOINT_CATEGORY_SCORE,
            "maxScore": 10,
            "feedback": ERROR_CATEGORY_FEEDBACK,
            **extra,
        }

    return AnalysisResult.model_validate({
        "score": FALLBACK_SCORE,
        "scores": {
            "keywordsRelevance": category(keywords=[]),
            "achievementsMetrics": category(highlights=[]),
            "structureReadability": category(),
            "summaryClarity": category(),
            "overallPolish": category(),
        },
        "identifiedSkills": [],
        "primaryKeywords": [],
        "suggestedImprovements": list(ERROR_IMPROVEMENTS),
        "generalFeedback": {"overall": ERROR_OVERALL_FEEDBACK},
        "jobAnalysis": dict(FALLBACK_JOB_ANALYSIS) if job_description_provided else None,
        "degraded": True,
    })


# --- Job skill heuristic ----------------------------------------------------


def job_skill_tokens(job_description: RawJobDescription | StructuredJobDescription | None) -> list[str]:
    """Skill-like phrases found in a job description, de-duplicated."""
    if job_description is None:
        return []
    if isinstance(job_description, StructuredJobDescription):
        candidates = job_description.skills + job_description.primary_keywords
    else:
        candidates = _TOKEN_SPLIT_RE.split(job_description.text)

    tokens: list[str] = []
    seen: set[str] = set()
    for candidate in candidates:
        token = candidate.strip(_TOKEN_STRIP)
        if not token or len(token) < 2 or len(token) > 40:
            continue
        if len(token.split()) > 4:
            continue
        if token.lower() not in seen:
            seen.add(token.lower())
            tokens.append(token)
    return tokens


def skill_matches(job_token: str, resume_skills: list[str]) -> bool:
    """Case-insensitive substring containment in either direction."""
    needle = job_token.lower()
    for skill in resume_skills:
        candidate = skill.lower()
        if candidate and (needle in candidate or candidate in needle):
            return True
    return False


def synthesize_job_analysis(
    resume_skills: list[str],
    job_description: RawJobDescription | StructuredJobDescription | None,
) -> dict[str, Any]:
    """Heuristic job analysis for when the model did not provide one."""
    tokens = job_skill_tokens(job_description)
    matched = [t for t in tokens if skill_matches(t, resume_skills)]
    missing = [t for t in tokens if t not in matched]

    alignment = [
        f"Your resume shows {token}, which this job asks for." for token in matched[:MAX_JOB_ITEMS]
    ] or ["Your resume lists skills, but none clearly match the skills named in this job description."]
    gaps = [
        f"The job calls for {token}, which is not evident in your resume." for token in missing[:MAX_JOB_ITEMS]
    ] or ["No obvious skill gaps were detected; confirm that your experience matches the seniority the role requires."]

    if tokens:
        ratio = len(matched) / len(tokens)
        estimate = (
            f"Estimated fit: {len(matched)} of {len(tokens)} skills identified in the job "
            f"description ({ratio:.0%}) appear in your resume."
        )
        if ratio >= 0.7:
            verdict = "This is a strong match; keep tailoring this resume for the role."
        elif ratio >= 0.4:
            verdict = "This is a partial match; tailor this resume if you can address the listed gaps."
        else:
            verdict = "This is a weak match; consider roles that fit your current skills better."
    else:
        estimate = "Estimated fit: no specific skills could be identified in the job description."
        verdict = "Compare the requirements manually before deciding whether to keep tailoring this resume."

    return {
        "alignmentAndStrengths": alignment,
        "gapsAndConcerns": gaps,
        "recommendationsToTailor": list(TAILORING_RECOMMENDATIONS),
        "overallFit": f"{estimate} {verdict}",
    }


# --- Repair helpers ---------------------------------------------------------


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _as_int(value: Any, low: int, high: int) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return max(low, min(high, int(round(number))))


def _repair_category(raw: Any, list_field: str | None, backfill: list[str]) -> dict[str, Any]:
    data = raw if isinstance(raw, dict) else {}
    score = _as_int(data.get("score"), 1, 10)
    feedback = data.get("feedback")
    category = {
        "score": score if score is not None else MIDPOINT_CATEGORY_SCORE,
        "maxScore": 10,
        "feedback": feedback.strip() if isinstance(feedback, str) and feedback.strip() else DEFAULT_CATEGORY_FEEDBACK,
    }
    if list_field:
        items = _string_list(data.get(list_field))
        category[list_field] = items or list(backfill)
    return category


def _repair_job_analysis(raw: Any, synthesized: dict[str, Any]) -> dict[str, Any]:
    data = raw if isinstance(raw, dict) else {}
    repaired = {}
    for key in ("alignmentAndStrengths", "gapsAndConcerns", "recommendationsToTailor"):
        repaired[key] = _string_list(data.get(key)) or synthesized[key]
    fit = data.get("overallFit")
    repaired["overallFit"] = fit.strip() if isinstance(fit, str) and fit.strip() else synthesized["overallFit"]
    return repaired


def repair(
    parsed: dict[str, Any],
    extraction: InitialExtraction,
    job_description_provided: bool,
    job_description: RawJobDescription | StructuredJobDescription | None = None,
) -> dict[str, Any]:
    """Fill every missing or malformed field of a parsed model answer."""
    raw_scores = parsed.get("scores") if isinstance(parsed.get("scores"), dict) else {}
    scores = {
        "keywordsRelevance": _repair_category(raw_scores.get("keywordsRelevance"), "keywords", extraction.keywords),
        "achievementsMetrics": _repair_category(raw_scores.get("achievementsMetrics"), "highlights", extraction.achievements),
        "structureReadability": _repair_category(raw_scores.get("structureReadability"), None, []),
        "summaryClarity": _repair_category(raw_scores.get("summaryClarity"), None, []),
        "overallPolish": _repair_category(raw_scores.get("overallPolish"), None, []),
    }
    missing_categories = [k for k in CATEGORY_KEYS if not isinstance(raw_scores.get(k), dict)]
    if missing_categories:
        logger.warning("Model omitted score categories: %s", ", ".join(missing_categories))

    score = _as_int(parsed.get("score"), 0, 100)
    if score is None:
        mean = sum(c["score"] for c in scores.values()) / len(scores)
        score = max(0, min(100, round(mean * 10)))
        logger.warning("Model omitted overall score, derived %d from categories", score)

    identified_skills = _string_list(parsed.get("identifiedSkills")) or extraction.all_skills()
    primary_keywords = _string_list(parsed.get("primaryKeywords")) or list(extraction.keywords)
    improvements = _string_list(parsed.get("suggestedImprovements")) or list(DEFAULT_IMPROVEMENTS)

    general = parsed.get("generalFeedback")
    if isinstance(general, str):
        overall = general
    elif isinstance(general, dict) and isinstance(general.get("overall"), str):
        overall = general["overall"]
    else:
        overall = ""
    overall = overall.strip() or DEFAULT_OVERALL_FEEDBACK

    job_analysis = None
    if job_description_provided:
        raw_job = parsed.get("jobAnalysis")
        synthesized = synthesize_job_analysis(
            identified_skills + extraction.all_skills(), job_description
        )
        if not isinstance(raw_job, dict):
            logger.warning("Job description was provided but jobAnalysis is missing, synthesizing it")
            job_analysis = synthesized
        else:
            job_analysis = _repair_job_analysis(raw_job, synthesized)

    return {
        "score": score,
        "scores": scores,
        "identifiedSkills": identified_skills,
        "primaryKeywords": primary_keywords,
        "suggestedImprovements": improvements,
        "generalFeedback": {"overall": overall},
        "jobAnalysis": job_analysis,
    }


def parse_model_json(raw: str) -> dict[str, Any] | None:
    """Parse a model answer as a JSON object, or None if it is not one."""
    try:
        parsed = json.loads(strip_code_fences(raw or ""))
    except json.JSONDecodeError as e:
        logger.error("Failed to parse model response as JSON: %s", e)
        return None
    if not isinstance(parsed, dict):
        logger.error("Model response is JSON but not an object: %s", type(parsed).__name__)
        return None
    return parsed


def check_result(data: dict[str, Any], job_description_provided: bool) -> AnalysisResult:
    """Final schema check. Failing here means repair() has a bug."""
    try:
        result = AnalysisResult.model_validate(data)
    except ValidationError as e:
        raise ValidationBugError("Repaired analysis failed validation", errors=e.errors()) from e
    if job_description_provided != (result.job_analysis is not None):
        raise ValidationBugError("jobAnalysis presence does not match job description presence")
    return result


def validate_and_repair(
    raw_model_output: str,
    initial_extraction: InitialExtraction,
    job_description_provided: bool,
    job_description: RawJobDescription | StructuredJobDescription | None = None,
) -> AnalysisResult:
    """Parse, repair and validate a stage 2 answer. Never raises."""
    parsed = parse_model_json(raw_model_output)
    if parsed is None:
        return build_fallback_result(job_description_provided)

    try:
        repaired = repair(parsed, initial_extraction, job_description_provided, job_description)
        return check_result(repaired, job_description_provided)
    except ValidationBugError as e:
        logger.error(
            "Analysis repair produced an invalid result: %s; errors=%s",
            e, e.errors, exc_info=True,
        )
    except Exception:
        logger.exception("Analysis repair failed unexpectedly")
    return build_fallback_result(job_description_provided)
