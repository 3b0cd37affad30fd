"""Retry configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from httpretry.domain.policies import Backoff, CheckForRetry, default_backoff, default_retry_policy

DEFAULT_RETRY_WAIT_MIN = 1.0
DEFAULT_RETRY_WAIT_MAX = 30.0
DEFAULT_RETRY_MAX = 4


class RetryConfig(BaseModel):
    """Configuration for the retry loop.

    Fields may be reassigned between calls (validated on assignment); a call
    in flight keeps the values it started with.

    Attributes:
        retry_wait_min: Minimum wait between attempts in seconds
        retry_wait_max: Maximum wait between attempts in seconds
        retry_max: Maximum number of retries (total attempts = retry_max + 1)
        check_for_retry: Policy deciding whether an attempt is retried
        backoff: Policy computing the wait before the next attempt
    """

    model_config = ConfigDict(
        validate_assignment=True,
        arbitrary_types_allowed=True,
        extra="forbid",
    )

    retry_wait_min: float = Field(DEFAULT_RETRY_WAIT_MIN, ge=0.0)
    retry_wait_max: float = Field(DEFAULT_RETRY_WAIT_MAX, ge=0.0)
    retry_max: int = Field(DEFAULT_RETRY_MAX, ge=0)
    check_for_retry: CheckForRetry = Field(default=default_retry_policy, exclude=True, repr=False)
    backoff: Backoff = Field(default=default_backoff, exclude=True, repr=False)
