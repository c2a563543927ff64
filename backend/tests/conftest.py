"""Shared test configuration, scripted model roles and fixtures."""

import asyncio
import copy
import json

import pytest

from config import BackoffPolicy, Settings
from services import prompt_builder
from services.cache import InMemoryAnalysisCache
from services.pipeline.base import DeepAnalyzer, FastExtractor
from services.resume_analyzer import ResumeAnalyzer
from services.storage import InMemoryAnalysisStore


SAMPLE_RESUME = """
John Doe
john.doe@email.com | +1-555-0123

Summary
Backend engineer with 7 years of experience building Python services.

Experience

Senior Software Engineer, Acme Corp
Jan 2020 - Present
- Built scalable microservices using Python and Go
- Cut p99 API latency by 40% by introducing Redis caching

Software Engineer, Initech
Jun 2017 - Dec 2019
- Developed REST APIs with Django and PostgreSQL

Education

Bachelor of Science in Computer Science, Stanford University, 2017

Skills

Python, Go, Django, Docker, Kubernetes, PostgreSQL, Redis
""".strip()

SAMPLE_JD = """Senior Python Developer

Requirements:
- 5+ years of experience with Python
- Django, FastAPI
- PostgreSQL, Redis
- Docker, Kubernetes
- Terraform
"""

EXTRACTION = {
    "technicalSkills": ["Python", "Go", "Django", "Docker", "PostgreSQL"],
    "softSkills": ["Leadership"],
    "keywords": ["microservices", "REST APIs", "caching"],
    "achievements": ["Cut p99 API latency by 40%"],
    "education": ["BSc Computer Science, Stanford University"],
    "experience": ["Senior Software Engineer, Acme Corp, 2020-present"],
}

_ANALYSIS = {
    "score": 72,
    "scores": {
        "keywordsRelevance": {
            "score": 7, "maxScore": 10,
            "feedback": "Good use of backend keywords such as microservices and REST APIs.",
            "keywords": ["Python", "microservices", "REST APIs"],
        },
        "achievementsMetrics": {
            "score": 6, "maxScore": 10,
            "feedback": "One strong metric (40% latency cut); most bullets lack numbers.",
            "highlights": ["Cut p99 API latency by 40%"],
        },
        "structureReadability": {"score": 8, "maxScore": 10, "feedback": "Clear standard sections."},
        "summaryClarity": {"score": 7, "maxScore": 10, "feedback": "Summary is short but focused."},
        "overallPolish": {"score": 7, "maxScore": 10, "feedback": "Consistent formatting."},
    },
    "identifiedSkills": ["Python", "Go", "Django", "Docker", "Kubernetes"],
    "primaryKeywords": ["backend", "microservices", "Python"],
    "suggestedImprovements": [
        "Quantify the impact of the Initech REST APIs",
        "Add a projects section",
        "Mention team size for the Acme role",
    ],
    "generalFeedback": {"overall": "A solid backend resume that would benefit from more metrics."},
}

_JOB_ANALYSIS = {
    "alignmentAndStrengths": ["7 years of Python", "Django and PostgreSQL in production", "Docker and Kubernetes"],
    "gapsAndConcerns": ["No FastAPI experience listed", "No Terraform experience", "No cloud certification"],
    "recommendationsToTailor": ["Add a FastAPI side project", "Mention infrastructure-as-code work", "Lead with Python in the summary"],
    "overallFit": "Roughly 75% of the core requirements are met; keep tailoring this resume for the role.",
}


def analysis_payload(with_job: bool = False) -> dict:
    payload = copy.deepcopy(_ANALYSIS)
    if with_job:
        payload["jobAnalysis"] = copy.deepcopy(_JOB_ANALYSIS)
    return payload


class FakeProviderError(Exception):
    """Mimics google.genai.errors.APIError: the HTTP status is in ``code``."""

    def __init__(self, code: int, message: str = "provider error") -> None:
        super().__init__(f"{code} {message}")
        self.code = code


class _ScriptedRole:
    """Answers with ``responder(system_prompt, user_content)``.

    The responder may return a string, an exception instance (raised), or
    an awaitable producing either.
    """

    def __init__(self, responder) -> None:
        self.responder = responder
        self.calls: list[dict] = []

    async def complete(self, system_prompt, user_content, *, temperature=None, json_mode=False):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_content": user_content,
            "temperature": temperature,
            "json_mode": json_mode,
        })
        result = self.responder(system_prompt, user_content)
        if asyncio.iscoroutine(result):
            result = await result
        if isinstance(result, BaseException):
            raise result
        return result

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def calls_with(self, system_prompt: str) -> list[dict]:
        return [c for c in self.calls if c["system_prompt"] == system_prompt]


class FakeFastExtractor(_ScriptedRole, FastExtractor):
    model_name = "fake-fast"


class FakeDeepAnalyzer(_ScriptedRole, DeepAnalyzer):
    model_name = "fake-deep"


def default_fast_responder(system_prompt: str, user_content: str) -> str:
    if system_prompt == prompt_builder.EXTRACTION_SYSTEM_PROMPT:
        return json.dumps(EXTRACTION)
    return f"Summary of section starting: {user_content[:40]}"


def default_deep_responder(system_prompt: str, user_content: str) -> str:
    with_job = system_prompt == prompt_builder.JOB_ANALYSIS_PROMPT
    return json.dumps(analysis_payload(with_job))


def fast_policy(max_retries: int = 0, timeout: float = 2.0) -> BackoffPolicy:
    return BackoffPolicy(max_retries=max_retries, initial_delay=0, timeout=timeout)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        gemini_api_key="",
        summarize_policy=fast_policy(max_retries=2),
        fallback_summarize_policy=fast_policy(),
        extraction_policy=fast_policy(max_retries=2),
        analysis_policy=fast_policy(max_retries=1),
        analysis_timeout_seconds=5,
    )


@pytest.fixture
def fast() -> FakeFastExtractor:
    return FakeFastExtractor(default_fast_responder)


@pytest.fixture
def deep() -> FakeDeepAnalyzer:
    return FakeDeepAnalyzer(default_deep_responder)


@pytest.fixture
def cache() -> InMemoryAnalysisCache:
    return InMemoryAnalysisCache(ttl_seconds=3600, max_entries=100)


@pytest.fixture
def store() -> InMemoryAnalysisStore:
    return InMemoryAnalysisStore()


@pytest.fixture
def analyzer(fast, deep, cache, store, test_settings) -> ResumeAnalyzer:
    return ResumeAnalyzer(
        fast=fast,
        deep=deep,
        cache=cache,
        store=store,
        settings=test_settings,
    )
