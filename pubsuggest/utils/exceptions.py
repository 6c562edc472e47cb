"""Custom exceptions for the suggestion engine

This module defines the exception hierarchy shared by the publication model,
the fetch/cache providers, the suggestion aggregator and the session:
- Identifier validation errors
- Per-publication hydration failures (absorbed, non-fatal)
- Systemic aggregation failures (surfaced once, recoverable)
- State invariant violations

All exceptions inherit from SuggestError to allow catching all engine-related
errors in a single except block when needed.
"""


class SuggestError(Exception):
    """Base exception for all suggestion engine errors

    Use this to catch any error raised by the engine:
    ```python
    try:
        await session.apply_queue()
    except SuggestError as e:
        logger.error("session_update_failed", error=str(e))
    ```
    """

    pass


class InvalidIdentifier(SuggestError, ValueError):
    """DOI failed validation

    Raised when:
    - DOI is None, empty or whitespace-only
    - DOI is not a string

    A rejected identifier never enters any session set.
    """

    def __init__(self, message: str, doi: object = None) -> None:
        super().__init__(message)
        self.doi = doi


class HydrationFailure(SuggestError):
    """Fetching metadata for a single publication failed

    Raised when:
    - Metadata service returns 404 or an unusable payload
    - Retries for this DOI are exhausted

    Non-fatal: the aggregator keeps the publication as a stub.
    """

    def __init__(self, message: str, doi: str | None = None) -> None:
        super().__init__(message)
        self.doi = doi


class AggregationFailure(SuggestError):
    """Suggestion computation failed as a whole

    Raised when the fetch layer is unavailable for the batch. The session
    keeps the previous suggestion result when this is raised.
    """

    pass


class InvariantViolation(SuggestError):
    """A DOI was found in two mutually exclusive sets

    Raised when:
    - A restored session lists a DOI as both selected and excluded
    - A suggestion result contains a selected or excluded DOI
    """

    def __init__(self, message: str, dois: list[str] | None = None) -> None:
        super().__init__(message)
        self.dois = dois or []


# Fetch layer exceptions


class APIError(SuggestError):
    """External API error"""

    pass


class RetryableError(APIError):
    """Base for retryable errors (timeouts, 5xx, connection errors).

    Errors that inherit from this class indicate transient failures
    that may succeed on retry.
    """

    pass


class RateLimitError(RetryableError):
    """Rate limit exceeded with optional retry-after metadata.

    Raised when:
    - API returns 429 status
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ProviderUnavailableError(APIError):
    """Circuit breaker OPEN - provider marked unavailable.

    Raised when:
    - Circuit breaker is in OPEN state
    - Provider has exceeded failure threshold
    """

    pass
