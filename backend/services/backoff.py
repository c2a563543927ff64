"""Single retry/backoff wrapper for every model call.

Each call site passes its own budget. Rate limits and timeouts abort at
once. Anything else is retried with exponential delay and, once the budget
is spent, surfaced as UpstreamServiceError.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from config import BackoffPolicy, settings
from services.errors import (
    AnalysisError,
    AnalysisTimeoutError,
    RateLimitedError,
    UpstreamServiceError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RATE_LIMIT_MARKERS = ("resource_exhausted", "rate limit", "too many requests")


def status_code_of(exc: BaseException) -> int | None:
    """HTTP status carried by a provider exception, if any."""
    for attr in ("code", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, RateLimitedError):
        return True
    if status_code_of(exc) == 429:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


def _retry_after_of(exc: BaseException) -> int:
    headers = getattr(getattr(exc, "response", None), "headers", None)
    if headers is not None:
        try:
            return int(headers.get("retry-after"))
        except (TypeError, ValueError):
            pass
    return settings.rate_limit_retry_after_seconds


def _should_retry(exc: BaseException) -> bool:
    # Never retry cancellation (CancelledError is not an Exception)
    if not isinstance(exc, Exception):
        return False
    if isinstance(exc, (RateLimitedError, AnalysisTimeoutError)):
        return False
    if isinstance(exc, UpstreamServiceError):
        return exc.retryable
    return not isinstance(exc, AnalysisError)


async def with_backoff(
    op: Callable[[], Awaitable[T]],
    max_retries: int,
    initial_delay: float,
    timeout: float,
    *,
    label: str = "model call",
) -> T:
    """Run ``op`` with up to ``max_retries`` retries.

    Delay before retry n (0-based) is ``initial_delay * 2**n`` seconds. Every
    attempt is raced against ``timeout`` seconds.
    """

    async def attempt() -> T:
        try:
            return await asyncio.wait_for(op(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise AnalysisTimeoutError(f"{label} timed out after {timeout}s") from e
        except AnalysisError:
            raise
        except Exception as e:
            if is_rate_limit_error(e):
                raise RateLimitedError(
                    f"{label} was rate limited: {e}",
                    retry_after=_retry_after_of(e),
                ) from e
            raise

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=initial_delay, min=0, max=60),
        retry=retry_if_exception(_should_retry),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

    try:
        return await retrying(attempt)
    except AnalysisError:
        raise
    except Exception as e:
        logger.error("%s failed after %d attempt(s): %s", label, max_retries + 1, e)
        raise UpstreamServiceError(
            f"{label} failed: {e}",
            status_code=status_code_of(e),
        ) from e


async def with_policy(
    op: Callable[[], Awaitable[T]],
    policy: BackoffPolicy,
    *,
    label: str = "model call",
) -> T:
    """with_backoff() driven by a configured BackoffPolicy."""
    return await with_backoff(
        op,
        policy.max_retries,
        policy.initial_delay,
        policy.timeout,
        label=label,
    )
