"""Turn a pasted job posting into structured fields with the fast model."""

import html
import logging
import re

from pydantic import ValidationError

from config import Settings, settings as default_settings
from models.schemas.job_description import StructuredJobDescription
from services import prompt_builder
from services.backoff import with_policy
from services.errors import InvalidInputError, UpstreamServiceError
from services.pipeline.base import FastExtractor
from services.validator import parse_model_json

logger = logging.getLogger(__name__)

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_job_text(text: str) -> str:
    """Strip HTML tags and entities, collapse all whitespace to single spaces."""
    text = html.unescape(_HTML_TAG_RE.sub(" ", text))
    return _WHITESPACE_RE.sub(" ", text).strip()


async def parse_job_description(
    fast: FastExtractor,
    text: str,
    settings: Settings | None = None,
) -> StructuredJobDescription:
    """Ask the fast model for the structured fields of a job posting.

    Raises InvalidInputError for an empty posting, RateLimitedError or
    AnalysisTimeoutError from the model call, and UpstreamServiceError when
    the model keeps failing or answers with something that is not a job
    description object.
    """
    cfg = settings or default_settings
    cleaned = clean_job_text(text or "")
    if not cleaned:
        raise InvalidInputError("Job description is empty")

    raw = await with_policy(
        lambda: fast.complete(
            prompt_builder.JOB_DESCRIPTION_PROMPT,
            cleaned,
            temperature=0,
            json_mode=True,
        ),
        cfg.extraction_policy,
        label="job description parsing",
    )
    parsed = parse_model_json(raw)
    if parsed is None:
        raise UpstreamServiceError("Job description parser did not return a JSON object", retryable=False)

    parsed.pop("kind", None)
    try:
        job = StructuredJobDescription.model_validate(parsed)
    except ValidationError as e:
        raise UpstreamServiceError(
            f"Job description parser returned invalid fields: {e}", retryable=False
        ) from e

    logger.info(
        "Job description parsed: role %r, %d skills, %d requirements",
        job.role_title, len(job.skills), len(job.requirements),
    )
    return job
