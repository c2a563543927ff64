import os

from pydantic import BaseModel
from pydantic_settings import BaseSettings


def _parse_cors_origins() -> list[str] | None:
    """Parse CORS_ORIGINS env var as comma-separated string or JSON list."""
    raw = os.environ.get("CORS_ORIGINS")
    if not raw:
        return None
    if raw.startswith("["):
        import json
        return json.loads(raw)
    return [o.strip() for o in raw.split(",") if o.strip()]


class BackoffPolicy(BaseModel):
    """Retry budget for one model call site. Delays and timeouts in seconds."""
    max_retries: int = 2
    initial_delay: float = 1.0
    timeout: float = 45.0


class Settings(BaseSettings):
    gemini_api_key: str = ""
    fast_model: str = "gemini-2.5-flash-lite"  # preprocessing + stage 1 extraction
    deep_model: str = "gemini-2.5-pro"  # stage 2 scoring
    max_upload_size_mb: int = 5
    max_job_description_chars: int = 10000
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    debug: bool = False

    # Preprocessing
    max_text_length: int = 7000
    chunk_size: int = 3500
    fallback_chunk_size: int = 5000
    fallback_excerpt_chars: int = 1000

    # Turn pasted job postings into structured fields before scoring
    parse_job_descriptions: bool = False

    # Analysis cache
    cache_ttl_hours: float = 24
    cache_max_entries: int = 1000  # 0 = unbounded

    # Per call site retry budgets
    summarize_policy: BackoffPolicy = BackoffPolicy(max_retries=2, initial_delay=0.5, timeout=30)
    fallback_summarize_policy: BackoffPolicy = BackoffPolicy(max_retries=0, initial_delay=0, timeout=30)
    extraction_policy: BackoffPolicy = BackoffPolicy(max_retries=2, initial_delay=1.0, timeout=45)
    analysis_policy: BackoffPolicy = BackoffPolicy(max_retries=1, initial_delay=1.0, timeout=120)

    # Callers enforce ~180s per request; stay under it
    analysis_timeout_seconds: float = 170
    rate_limit_retry_after_seconds: int = 60

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
        "protected_namespaces": ("settings_",),
    }


_cors_override = _parse_cors_origins()
settings = Settings(**{"cors_origins": _cors_override} if _cors_override else {})
