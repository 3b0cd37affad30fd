"""Retry loop built on tenacity.

The attempt function reports an ``AttemptResult`` (outcome plus the policy's
decision) instead of raising, so tenacity only decides on results:

- retry: ``retry_if_result`` on ``decision.retry``
- stop: ``stop_after_attempt(retry_max + 1)``
- wait: the configured ``Backoff`` policy
- sleep: the request context, so cancellation interrupts the wait
- exhaustion: ``RetryExhaustedError`` instead of tenacity's ``RetryError``,
  unless the context was cancelled meanwhile

Exceptions raised by the attempt function itself (body rewind failure,
cancellation) are never retried and propagate unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, NoReturn

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_result,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from httpretry.domain.config.retry import RetryConfig
from httpretry.domain.errors import RetryExhaustedError
from httpretry.domain.models.outcome import AttemptOutcome, RetryDecision
from httpretry.domain.models.request import Request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one attempt together with the policy decision about it"""

    outcome: AttemptOutcome
    decision: RetryDecision


class wait_backoff_policy(wait_base):
    """Adapt a ``Backoff`` callable to tenacity's wait protocol."""

    def __init__(self, config: RetryConfig):
        self.backoff = config.backoff
        self.min_wait = config.retry_wait_min
        self.max_wait = config.retry_wait_max
        self.retry_max = config.retry_max

    def __call__(self, retry_state: RetryCallState) -> float:
        if retry_state.attempt_number > self.retry_max:
            # Last attempt: tenacity asks for a wait even though it will stop
            return 0.0
        result: AttemptResult = retry_state.outcome.result()
        attempt = retry_state.attempt_number - 1
        return float(self.backoff(self.min_wait, self.max_wait, attempt, result.outcome.response))


def _wants_retry(result: AttemptResult) -> bool:
    return result.decision.retry


def _describe(request: Request, result: AttemptResult) -> str:
    desc = f"{request.method} {request.url}"
    status_code = result.outcome.status_code
    if status_code is not None:
        desc = f"{desc} (status: {status_code})"
    return desc


def _log_before_sleep(request: Request, retry_max: int) -> Callable[[RetryCallState], None]:
    def _before_sleep(retry_state: RetryCallState) -> None:
        if retry_state.outcome is None or retry_state.next_action is None:
            return
        result: AttemptResult = retry_state.outcome.result()
        remaining = retry_max + 1 - retry_state.attempt_number
        logger.debug(
            f"{_describe(request, result)}: retrying in {retry_state.next_action.sleep:.2f}s "
            f"({remaining} left)"
        )

    return _before_sleep


def _give_up(request: Request, retry_max: int) -> Callable[[RetryCallState], NoReturn]:
    def _retry_error_callback(retry_state: RetryCallState) -> NoReturn:
        # A cancel during the last attempt wins over exhaustion
        request.context.check()
        attempts = retry_max + 1
        logger.warning(f"{request.method} {request.url} giving up after {attempts} attempts")
        raise RetryExhaustedError(request.method, request.url, attempts)

    return _retry_error_callback


def create_retrying(config: RetryConfig, request: Request) -> Retrying:
    """Create a tenacity controller for one call

    Args:
        config: Retry configuration snapshot for this call
        request: Request being executed (for logging and its context)

    Returns:
        Retrying controller; call it with the attempt function
    """
    return Retrying(
        stop=stop_after_attempt(config.retry_max + 1),
        wait=wait_backoff_policy(config),
        retry=retry_if_result(_wants_retry),
        sleep=request.context.sleep,
        before_sleep=_log_before_sleep(request, config.retry_max),
        retry_error_callback=_give_up(request, config.retry_max),
    )
