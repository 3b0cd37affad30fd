"""Retry and backoff policies.

Both are plain callables so any function with the right signature can be
assigned to ``RetryConfig.check_for_retry`` / ``RetryConfig.backoff``:

- ``CheckForRetry(response, error) -> (retry, error_override)`` is called after
  every attempt, including the first. ``response`` is None when the transport
  raised. When it says "stop" and returns an error, that error is raised in
  place of the transport error.
- ``Backoff(min_wait, max_wait, attempt, response) -> seconds`` is called after
  a failed attempt; ``attempt`` is 0 after the first attempt.
"""

import math
import random
from typing import Callable, Optional, Tuple

import requests

from httpretry.domain.models.outcome import RetryDecision

CheckForRetry = Callable[
    [Optional[requests.Response], Optional[BaseException]],
    Tuple[bool, Optional[BaseException]],
]

Backoff = Callable[[float, float, int, Optional[requests.Response]], float]

# Status 0 stands for "no response" from transports that report it that way
RETRYABLE_STATUSES = frozenset({0, 503})


def default_retry_policy(
    response: Optional[requests.Response], error: Optional[BaseException]
) -> RetryDecision:
    """Retry on transport errors, status 0 and 503 Service Unavailable."""
    if error is not None:
        return RetryDecision(True, error)
    if response is not None and response.status_code in RETRYABLE_STATUSES:
        return RetryDecision(True, None)
    return RetryDecision(False, None)


def retry_on_server_errors(
    response: Optional[requests.Response], error: Optional[BaseException]
) -> RetryDecision:
    """Broader policy: also retry 429 and 5xx responses (except 501)."""
    if error is not None:
        return RetryDecision(True, error)
    if response is None:
        return RetryDecision(False, None)
    status_code = response.status_code
    if status_code in RETRYABLE_STATUSES or status_code == 429:
        return RetryDecision(True, None)
    # 501 Not Implemented will not change between attempts
    if 500 <= status_code < 600 and status_code != 501:
        return RetryDecision(True, None)
    return RetryDecision(False, None)


def default_backoff(
    min_wait: float, max_wait: float, attempt: int, response: Optional[requests.Response]
) -> float:
    """Exponential backoff: ``min_wait * 2 ** attempt`` capped at ``max_wait``."""
    try:
        sleep = min_wait * math.pow(2, attempt)
    except OverflowError:
        return max_wait
    if not math.isfinite(sleep) or sleep > max_wait:
        return max_wait
    return sleep


def linear_jitter_backoff(
    min_wait: float, max_wait: float, attempt: int, response: Optional[requests.Response]
) -> float:
    """Randomized linear backoff, spreads out retries of many clients.

    Each wait is a random value between ``min_wait`` and ``max_wait`` scaled by
    the attempt number, capped at ``max_wait``.
    """
    if max_wait <= min_wait:
        return min_wait
    sleep = random.uniform(min_wait, max_wait) * (attempt + 1)
    return min(sleep, max_wait)
