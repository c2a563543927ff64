"""Orchestrator: two-stage LLM resume analysis.

Pipeline:
1. Input check and cache lookup (a hit returns immediately)
2. Preprocessing: chunk + summarize oversized text (fast model)
3. Stage 1: extract skills, keywords, achievements (fast model)
4. Stage 2: score and optionally compare with a job (deep model); a pasted
   job posting can first be parsed into fields (fast model)
5. Validate and repair the stage 2 answer
6. Cache, then hand off to the analysis store
"""

import asyncio
import enum
import logging
import time
from typing import Any

from pydantic import ValidationError

from config import Settings, settings as default_settings
from models.responses import AnalysisResult, StoredAnalysis
from models.schemas.initial_extraction import InitialExtraction
from models.schemas.job_description import (
    RawJobDescription,
    StructuredJobDescription,
    coerce_job_description,
)
from services import prompt_builder, validator
from services.backoff import with_policy
from services.cache import CacheLayer, make_cache_key
from services.errors import (
    AnalysisError,
    AnalysisTimeoutError,
    InvalidInputError,
    UpstreamServiceError,
)
from services.job_parser import parse_job_description
from services.pipeline.base import DeepAnalyzer, FastExtractor
from services.preprocessor import TextPreprocessor
from services.storage import AnalysisStore, NewAnalysis

logger = logging.getLogger(__name__)


class AnalysisStage(str, enum.Enum):
    START = "start"
    PREPROCESSED = "preprocessed"
    EXTRACTED = "extracted"
    SCORED = "scored"
    VALIDATED = "validated"
    CACHED = "cached"
    DONE = "done"
    FAILED = "failed"


def _coerce_job(value: Any) -> RawJobDescription | StructuredJobDescription | None:
    try:
        return coerce_job_description(value)
    except (ValidationError, TypeError) as e:
        raise InvalidInputError(f"Invalid job description: {e}") from e


class ResumeAnalyzer:
    """Runs one analysis per call. Holds no per-request state."""

    def __init__(
        self,
        fast: FastExtractor,
        deep: DeepAnalyzer,
        cache: CacheLayer,
        preprocessor: TextPreprocessor | None = None,
        store: AnalysisStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.fast = fast
        self.deep = deep
        self.cache = cache
        self.settings = settings or default_settings
        self.preprocessor = preprocessor or TextPreprocessor(fast, self.settings)
        self.store = store

    async def analyze(self, resume_text: str, job_description: Any = None) -> AnalysisResult:
        """Analyze a resume, optionally against a job description.

        Raises InvalidInputError, RateLimitedError or AnalysisTimeoutError.
        Any other upstream failure yields a degraded fallback result.
        """
        if not resume_text or not resume_text.strip():
            raise InvalidInputError("Resume content is required")
        job = _coerce_job(job_description)

        start = time.perf_counter()
        stage = AnalysisStage.START
        logger.info(
            "Starting resume analysis: %d chars, job description: %s",
            len(resume_text), type(job).__name__ if job else "none",
        )

        cache_key = make_cache_key(resume_text, job)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info("Using cached analysis %s", cache_key)
            return cached

        try:
            processed = await self.preprocessor.preprocess(resume_text)
            stage = AnalysisStage.PREPROCESSED
            logger.info("Stage %s: %d -> %d chars", stage.value, len(resume_text), len(processed))

            extraction = await self._extract(processed)
            stage = AnalysisStage.EXTRACTED
            logger.info(
                "Stage %s: %d skills, %d keywords",
                stage.value, len(extraction.all_skills()), len(extraction.keywords),
            )

            scoring_job = await self._structure_job(job)
            raw = await self._score(processed, extraction, scoring_job)
            stage = AnalysisStage.SCORED

            result = validator.validate_and_repair(raw, extraction, job is not None, scoring_job)
            stage = AnalysisStage.VALIDATED
        except UpstreamServiceError as e:
            logger.error(
                "Analysis degraded at stage %s after %.2fs: %s",
                stage.value, time.perf_counter() - start, e,
            )
            return validator.build_fallback_result(job is not None)
        except AnalysisError as e:
            logger.warning(
                "Analysis %s after stage %s (%.2fs): %s: %s",
                AnalysisStage.FAILED.value, stage.value, time.perf_counter() - start,
                type(e).__name__, e,
            )
            raise

        if not result.degraded:
            self.cache.put(cache_key, result)
            stage = AnalysisStage.CACHED

        logger.info(
            "Resume analysis %s in %.2fs (last stage %s, score %d)",
            AnalysisStage.DONE.value, time.perf_counter() - start, stage.value, result.score,
        )
        return result

    async def analyze_and_store(
        self,
        resume_text: str,
        job_description: Any = None,
        user_id: str | None = None,
    ) -> StoredAnalysis:
        """Analyze, then persist through the configured store."""
        if self.store is None:
            raise RuntimeError("ResumeAnalyzer has no AnalysisStore configured")
        job = _coerce_job(job_description)
        result = await self.analyze(resume_text, job)
        return await self.store.save(NewAnalysis(
            user_id=user_id,
            content=resume_text,
            score=result.score,
            job_description=job,
            analysis=result.details(),
        ))

    async def _structure_job(
        self,
        job: RawJobDescription | StructuredJobDescription | None,
    ) -> RawJobDescription | StructuredJobDescription | None:
        """Parse a raw posting into fields when enabled; keep it raw on failure."""
        if not self.settings.parse_job_descriptions or not isinstance(job, RawJobDescription):
            return job
        try:
            return await parse_job_description(self.fast, job.text, self.settings)
        except UpstreamServiceError as e:
            logger.warning("Job description parsing failed, using raw text: %s", e)
            return job

    async def _extract(self, processed: str) -> InitialExtraction:
        raw = await with_policy(
            lambda: self.fast.complete(
                prompt_builder.EXTRACTION_SYSTEM_PROMPT,
                processed,
                temperature=0,
                json_mode=True,
            ),
            self.settings.extraction_policy,
            label="initial extraction",
        )
        parsed = validator.parse_model_json(raw)
        if parsed is None:
            logger.warning("Initial extraction was not a JSON object, continuing without it")
            return InitialExtraction()
        return InitialExtraction.model_validate(parsed)

    async def _score(
        self,
        processed: str,
        extraction: InitialExtraction,
        job: RawJobDescription | StructuredJobDescription | None,
    ) -> str:
        system_prompt = prompt_builder.select_system_prompt(job is not None)
        user_prompt = prompt_builder.build_analysis_prompt(processed, extraction, job)
        call = with_policy(
            lambda: self.deep.complete(
                system_prompt,
                user_prompt,
                temperature=0.1,
                json_mode=True,
            ),
            self.settings.analysis_policy,
            label="deep analysis",
        )
        timeout = self.settings.analysis_timeout_seconds
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise AnalysisTimeoutError(f"Deep analysis exceeded {timeout}s") from e
