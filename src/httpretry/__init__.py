"""httpretry - retrying HTTP client on top of requests."""

from httpretry.domain.config import AppConfig, HTTPConfig, RetryConfig
from httpretry.domain.errors import (
    BodyRewindError,
    ConfigurationError,
    DrainError,
    HTTPRetryError,
    InvalidRequestError,
    RequestCancelledError,
    RetryExhaustedError,
)
from httpretry.domain.models.context import RequestContext
from httpretry.domain.models.outcome import AttemptOutcome, RetryDecision
from httpretry.domain.models.request import Request, new_request
from httpretry.domain.policies import (
    default_backoff,
    default_retry_policy,
    linear_jitter_backoff,
    retry_on_server_errors,
)
from httpretry.infrastructure.http_client import Client

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "AttemptOutcome",
    "BodyRewindError",
    "Client",
    "ConfigurationError",
    "DrainError",
    "HTTPConfig",
    "HTTPRetryError",
    "InvalidRequestError",
    "Request",
    "RequestCancelledError",
    "RequestContext",
    "RetryConfig",
    "RetryDecision",
    "RetryExhaustedError",
    "default_backoff",
    "default_retry_policy",
    "linear_jitter_backoff",
    "new_request",
    "retry_on_server_errors",
]
