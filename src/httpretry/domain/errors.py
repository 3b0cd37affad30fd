"""Error types raised by httpretry.

Transport errors are not wrapped: they surface as the original
``requests.RequestException`` when the retry policy decides to stop.
"""

from typing import Optional


class HTTPRetryError(Exception):
    """Base class for all httpretry errors."""

    pass


class InvalidRequestError(HTTPRetryError, ValueError):
    """Request could not be built (bad method or URL)."""

    pass


class BodyRewindError(HTTPRetryError):
    """Request body could not be rewound before an attempt.

    Always fatal: a body that cannot be reset cannot be replayed safely.
    """

    pass


class DrainError(HTTPRetryError):
    """Response body could not be fully read before a retry.

    Only logged. The connection may simply not be reused.
    """

    pass


class RetryExhaustedError(HTTPRetryError):
    """Policy still wanted to retry but no attempts were left."""

    def __init__(self, method: str, url: str, attempts: int):
        self.method = method
        self.url = url
        self.attempts = attempts
        super().__init__(f"{method} {url} giving up after {attempts} attempts")


class RequestCancelledError(HTTPRetryError):
    """Request context was cancelled or its deadline passed."""

    def __init__(self, reason: str = "cancelled", detail: Optional[str] = None):
        self.reason = reason
        message = f"request {reason}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ConfigurationError(HTTPRetryError):
    """Configuration validation error."""

    pass
