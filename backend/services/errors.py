"""Error taxonomy surfaced by the analysis pipeline.

Only three of these ever reach an end user: InvalidInputError,
RateLimitedError and AnalysisTimeoutError. UpstreamServiceError is turned
into a degraded fallback result by the analyzer, and ValidationBugError is
logged and replaced with the same fallback.
"""


class AnalysisError(Exception):
    """Base class for all pipeline errors."""

    user_message = "Failed to analyze resume"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.user_message)
        self.message = message or self.user_message


class InvalidInputError(AnalysisError, ValueError):
    """The caller sent no usable resume content."""

    user_message = "Please provide resume content"


class RateLimitedError(AnalysisError):
    """The model provider answered with HTTP 429."""

    user_message = "Service is temporarily busy, please try again shortly"

    def __init__(self, message: str = "", retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class AnalysisTimeoutError(AnalysisError):
    """A model call or the whole analysis exceeded its time budget."""

    user_message = "Your document may be too large or complex, try trimming it"


class UpstreamServiceError(AnalysisError):
    """The model provider kept failing after the retry budget was spent."""

    user_message = "The analysis service is currently unavailable"

    def __init__(
        self,
        message: str = "",
        status_code: int | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class ValidationBugError(AnalysisError):
    """Repaired output still failed schema validation. Internal only."""

    def __init__(self, message: str = "", errors: list | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []
