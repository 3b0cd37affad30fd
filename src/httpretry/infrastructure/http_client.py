"""HTTP client with automatic retries (requests + tenacity).

``Client.do`` re-issues a request while the retry policy asks for it, rewinding
the request body before every attempt and draining discarded responses so their
connections go back to the pool.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, Optional

import requests

from httpretry.domain.config import AppConfig, RetryConfig
from httpretry.domain.errors import BodyRewindError, DrainError
from httpretry.domain.models.context import RequestContext
from httpretry.domain.models.outcome import AttemptOutcome, RetryDecision
from httpretry.domain.models.request import BodyType, Request, new_request
from httpretry.infrastructure.retry import AttemptResult, create_retrying

logger = logging.getLogger(__name__)

DRAIN_CHUNK_SIZE = 64 * 1024


def _discard_body(response: requests.Response) -> None:
    try:
        for _ in response.iter_content(chunk_size=DRAIN_CHUNK_SIZE):
            pass
    except (requests.exceptions.RequestException, OSError) as e:
        raise DrainError(f"error reading response body: {e}") from e


def drain_body(response: requests.Response) -> None:
    """Read and discard the rest of a response body, then close it

    Errors are logged only: an undrained connection is just not reused.
    """
    try:
        _discard_body(response)
    except DrainError as e:
        logger.error(f"Failed to drain {response.url}: {e}")
    finally:
        response.close()


class Client:
    """HTTP client that retries failed requests

    Example:
        >>> client = Client()
        >>> client.config.retry_max = 2
        >>> resp = client.get("https://example.com/health")
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client

        Args:
            config: Retry configuration (defaults: 1s/30s waits, 4 retries)
            session: Transport session (a new requests.Session if None)
            timeout: Per-attempt transport timeout in seconds (None for no timeout)
        """
        self.config = config if config is not None else RetryConfig()
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    @classmethod
    def from_config(cls, app_config: AppConfig, session: Optional[requests.Session] = None) -> "Client":
        """Create client from loaded application configuration"""
        client = cls(
            config=app_config.retry.model_copy(),
            session=session,
            timeout=app_config.http.timeout,
        )
        if app_config.http.user_agent:
            client.session.headers["User-Agent"] = app_config.http.user_agent
        return client

    def new_request(
        self,
        method: str,
        url: str,
        body: BodyType = None,
        *,
        context: Optional[RequestContext] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Request:
        """Build a request with this client's session defaults merged in"""
        return new_request(method, url, body, context=context, headers=headers, session=self.session)

    def do(self, request: Request) -> requests.Response:
        """Send a request, retrying according to the configured policies

        Args:
            request: Request handle; it must not be shared with another call

        Returns:
            Response of the last attempt (body not yet read)

        Raises:
            BodyRewindError: If the body could not be rewound before an attempt
            RequestCancelledError: If the request context was cancelled or expired
            RetryExhaustedError: If the policy still wanted to retry after the last attempt
            requests.RequestException: Transport error of the final attempt
        """
        config = self.config.model_copy()
        send_kwargs = self.session.merge_environment_settings(request.url, {}, True, None, None)
        retrying = create_retrying(config, request)

        attempts = itertools.count()
        result = retrying(lambda: self._attempt(request, config, next(attempts), send_kwargs))

        outcome = result.outcome
        if result.decision.error is not None:
            if outcome.response is not None:
                outcome.response.close()
            raise result.decision.error
        if outcome.error is not None:
            raise outcome.error
        return outcome.response

    def _attempt(
        self,
        request: Request,
        config: RetryConfig,
        attempt: int,
        send_kwargs: Dict[str, Any],
    ) -> AttemptResult:
        """Run one attempt: rewind, send, evaluate the policy, drain on retry"""
        context = request.context
        context.check()

        try:
            request.rewind()
        except (OSError, ValueError) as e:
            raise BodyRewindError(f"failed to seek body: {e}") from e

        try:
            response = self.session.send(request.prepared, timeout=self._attempt_timeout(context), **send_kwargs)
            outcome = AttemptOutcome(attempt=attempt, response=response)
        except requests.exceptions.RequestException as e:
            if context.done:
                raise context.error(str(e)) from e
            logger.error(f"{request.method} {request.url} request failed: {e}")
            outcome = AttemptOutcome(attempt=attempt, error=e)

        decision = RetryDecision(*config.check_for_retry(outcome.response, outcome.error))

        if decision.retry and outcome.response is not None:
            drain_body(outcome.response)

        return AttemptResult(outcome=outcome, decision=decision)

    def _attempt_timeout(self, context: RequestContext) -> Optional[float]:
        remaining = context.remaining()
        if remaining is None:
            return self.timeout
        if self.timeout is None:
            return remaining
        return min(self.timeout, remaining)

    def get(self, url: str) -> requests.Response:
        """GET with retries"""
        return self.do(self.new_request("GET", url))

    def head(self, url: str) -> requests.Response:
        """HEAD with retries"""
        return self.do(self.new_request("HEAD", url))

    def post(self, url: str, content_type: str, body: BodyType = None) -> requests.Response:
        """POST with retries; ``body`` is replayed from its start on each attempt"""
        request = self.new_request("POST", url, body)
        request.headers["Content-Type"] = content_type
        return self.do(request)

    def close(self) -> None:
        """Close the underlying session"""
        self.session.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
