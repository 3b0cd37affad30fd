"""Shared fixtures: fake transport and recorded backoff sleeps"""

from __future__ import annotations

import io
from typing import Any, Callable, List, Optional, Union

import pytest
import requests

from httpretry.domain.models.context import RequestContext

Outcome = Union[int, requests.Response, BaseException, Callable[[], Any]]


def make_response(
    status_code: int,
    body: bytes = b"",
    headers: Optional[dict] = None,
    url: str = "http://example.test/resource",
) -> requests.Response:
    r = requests.Response()
    r.status_code = status_code
    r.url = url
    r.reason = "Service Unavailable" if status_code == 503 else "OK"
    r.raw = io.BytesIO(body)
    if headers:
        r.headers.update(headers)
    return r


class FakeSession(requests.Session):
    """requests.Session whose send() replays scripted outcomes

    Each outcome is a status code (fresh response), a Response, an exception to
    raise, or a callable returning one of those. The last outcome repeats.
    """

    def __init__(self, outcomes: List[Outcome]):
        super().__init__()
        self.trust_env = False
        self._outcomes = list(outcomes)
        self.sent: List[requests.PreparedRequest] = []
        self.bodies: List[Optional[bytes]] = []
        self.send_kwargs: List[dict] = []

    @property
    def attempts(self) -> int:
        return len(self.sent)

    def send(self, request, **kwargs):
        self.sent.append(request)
        self.send_kwargs.append(kwargs)
        body = request.body
        if hasattr(body, "read"):
            body = body.read()
        self.bodies.append(body)

        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if callable(outcome):
            outcome = outcome()
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, int):
            return make_response(outcome, body=b"status %d" % outcome)
        return outcome


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff waits instead of sleeping"""
    recorded: List[float] = []

    def fake_sleep(self, seconds):
        self.check()
        recorded.append(seconds)

    monkeypatch.setattr(RequestContext, "sleep", fake_sleep)
    return recorded
