from __future__ import annotations

import io
import logging
import threading
import time

import pytest
import requests

from conftest import FakeSession, make_response
from httpretry.domain.config import RetryConfig
from httpretry.domain.errors import BodyRewindError, RequestCancelledError, RetryExhaustedError
from httpretry.domain.models.context import RequestContext
from httpretry.domain.policies import default_retry_policy
from httpretry.infrastructure.http_client import Client, drain_body

URL = "http://example.test/resource"


def _always_retry(response, error):
    return True, None


def _client(outcomes, **config) -> Client:
    return Client(config=RetryConfig(**config), session=FakeSession(outcomes))


class FlakySeekBody(io.BytesIO):
    """BytesIO whose seek() fails once ``broken`` is set"""

    broken = False

    def seek(self, *args):
        if self.broken:
            raise OSError("stream is not seekable anymore")
        return super().seek(*args)


def test_retries_503_until_success(sleeps):
    client = _client([503, 503, 200], retry_max=2)

    resp = client.get(URL)

    assert resp.status_code == 200
    assert client.session.attempts == 3
    assert sleeps == [1.0, 2.0]


def test_gives_up_after_retry_max_plus_one_attempts(sleeps):
    client = _client([503], retry_max=1)

    with pytest.raises(RetryExhaustedError) as exc_info:
        client.get(URL)

    assert client.session.attempts == 2
    assert str(exc_info.value) == f"GET {URL} giving up after 2 attempts"
    assert exc_info.value.method == "GET"
    assert exc_info.value.url == URL
    assert exc_info.value.attempts == 2
    assert sleeps == [1.0]


@pytest.mark.parametrize("retry_max", [0, 1, 2, 5])
def test_always_retry_policy_makes_n_plus_one_attempts(sleeps, retry_max):
    client = _client([200], retry_max=retry_max, check_for_retry=_always_retry)

    with pytest.raises(RetryExhaustedError, match=f"giving up after {retry_max + 1} attempts"):
        client.get(URL)

    assert client.session.attempts == retry_max + 1
    assert len(sleeps) == retry_max


def test_retry_max_zero_makes_single_attempt_without_waiting(sleeps):
    client = _client([503], retry_max=0)

    with pytest.raises(RetryExhaustedError, match="giving up after 1 attempts"):
        client.get(URL)

    assert client.session.attempts == 1
    assert sleeps == []


@pytest.mark.parametrize("stop_at", [0, 1, 3])
def test_stop_decision_returns_that_attempts_response_unchanged(sleeps, stop_at):
    responses = [make_response(503 if i < stop_at else 418) for i in range(5)]
    client = _client(responses, retry_max=4)

    resp = client.get(URL)

    assert resp is responses[stop_at]
    assert client.session.attempts == stop_at + 1
    assert len(sleeps) == stop_at


def test_first_attempt_stop_is_not_drained(sleeps):
    response = make_response(200, body=b"payload")
    client = _client([response])

    resp = client.get(URL)

    assert resp is response
    assert resp._content_consumed is False
    assert resp.content == b"payload"
    assert sleeps == []


def test_retried_responses_are_drained(sleeps):
    first = make_response(503, body=b"x" * 200_000)
    final = make_response(200, body=b"done")
    client = _client([first, final], retry_max=2)

    resp = client.get(URL)

    assert first._content_consumed is True
    assert resp is final
    assert resp._content_consumed is False


def test_exhaustion_drains_last_response(sleeps):
    last = make_response(503, body=b"busy")
    client = _client([make_response(503), last], retry_max=1)

    with pytest.raises(RetryExhaustedError):
        client.get(URL)

    assert last._content_consumed is True


def test_drain_failure_is_logged_not_fatal(sleeps, caplog):
    class BrokenRaw(io.BytesIO):
        def read(self, *args):
            raise OSError("connection reset")

    broken = make_response(503)
    broken.raw = BrokenRaw()
    client = _client([broken, 200], retry_max=1)

    with caplog.at_level(logging.ERROR, logger="httpretry"):
        resp = client.get(URL)

    assert resp.status_code == 200
    assert "error reading response body: connection reset" in caplog.text
    assert broken.raw.closed


def test_drain_body_reads_response_fully():
    response = make_response(200, body=b"abc")
    drain_body(response)
    assert response._content_consumed is True


def test_body_is_replayed_on_every_attempt(sleeps):
    body = io.BytesIO(b'{"id": 1}')
    client = _client([503, 503, 201], retry_max=2)
    request = client.new_request("POST", URL, body)

    resp = client.do(request)

    assert resp.status_code == 201
    assert client.session.bodies == [b'{"id": 1}'] * 3
    assert request.prepared.headers["Content-Length"] == "9"


def test_body_is_rewound_before_first_attempt(sleeps):
    body = io.BytesIO(b"abcdef")
    client = _client([200])
    request = client.new_request("PUT", URL, body)
    body.read(4)

    client.do(request)

    assert client.session.bodies == [b"abcdef"]


def test_transport_never_closes_body(sleeps):
    body = io.BytesIO(b"data")
    client = _client([503, 200], retry_max=1)
    request = client.new_request("POST", URL, body)
    request.prepared.body.close()

    client.do(request)

    assert not body.closed
    assert client.session.bodies == [b"data", b"data"]


def test_seek_failure_aborts_without_sending(sleeps):
    body = FlakySeekBody(b"payload")

    def break_body_then_503():
        body.broken = True
        return make_response(503)

    client = _client([break_body_then_503, 200], retry_max=3)
    request = client.new_request("POST", URL, body)

    with pytest.raises(BodyRewindError, match="failed to seek body") as exc_info:
        client.do(request)

    assert client.session.attempts == 1
    assert isinstance(exc_info.value.__cause__, OSError)


def test_transport_error_is_retried_and_logged(sleeps, caplog):
    client = _client([requests.ConnectionError("refused"), 200], retry_max=2)

    with caplog.at_level(logging.ERROR, logger="httpretry"):
        resp = client.get(URL)

    assert resp.status_code == 200
    assert sleeps == [1.0]
    assert f"GET {URL} request failed: refused" in caplog.text


def test_exhausted_transport_errors_raise_exhaustion_not_cause(sleeps):
    client = _client([requests.Timeout("slow")], retry_max=1)

    with pytest.raises(RetryExhaustedError) as exc_info:
        client.get(URL)

    assert exc_info.value.__cause__ is None
    assert client.session.attempts == 2


def test_transport_error_surfaces_when_policy_stops(sleeps):
    error = requests.ConnectionError("refused")
    client = _client([error], check_for_retry=lambda resp, err: (False, None))

    with pytest.raises(requests.ConnectionError) as exc_info:
        client.get(URL)

    assert exc_info.value is error
    assert client.session.attempts == 1


def test_policy_error_overrides_on_stop(sleeps):
    class NotFound(Exception):
        pass

    def policy(response, error):
        if response is not None and response.status_code == 404:
            return False, NotFound("missing")
        return default_retry_policy(response, error)

    response = make_response(404, body=b"nope")
    client = _client([503, response], retry_max=3, check_for_retry=policy)

    with pytest.raises(NotFound, match="missing"):
        client.get(URL)

    assert client.session.attempts == 2


def test_policy_error_overrides_transport_error(sleeps):
    class Wrapped(Exception):
        pass

    client = _client(
        [requests.ConnectionError("refused")],
        check_for_retry=lambda resp, err: (False, Wrapped(str(err))),
    )

    with pytest.raises(Wrapped, match="refused"):
        client.get(URL)


def test_backoff_receives_bounds_attempt_and_response(sleeps):
    calls = []

    def backoff(min_wait, max_wait, attempt, response):
        calls.append((min_wait, max_wait, attempt, response.status_code if response is not None else None))
        return 0.25

    client = _client(
        [503, requests.ConnectionError("refused"), 200],
        retry_max=3,
        retry_wait_min=0.5,
        retry_wait_max=4.0,
        backoff=backoff,
    )

    client.get(URL)

    assert calls == [(0.5, 4.0, 0, 503), (0.5, 4.0, 1, None)]
    assert sleeps == [0.25, 0.25]


def test_waits_are_capped_at_max(sleeps):
    client = _client([503], retry_max=5, retry_wait_min=1.0, retry_wait_max=5.0)

    with pytest.raises(RetryExhaustedError):
        client.get(URL)

    assert sleeps == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_config_changes_apply_to_next_call(sleeps):
    client = _client([503], retry_max=3)
    client.config.retry_max = 0

    with pytest.raises(RetryExhaustedError, match="after 1 attempts"):
        client.get(URL)

    assert client.session.attempts == 1


def test_retry_log_includes_status_and_remaining(sleeps, caplog):
    client = _client([503, 200], retry_max=2)

    with caplog.at_level(logging.DEBUG, logger="httpretry"):
        client.get(URL)

    assert f"GET {URL} (status: 503): retrying in 1.00s (2 left)" in caplog.text


def test_post_sets_content_type_and_replays_body(sleeps):
    client = _client([503, 200], retry_max=1)

    resp = client.post(URL, "application/json", b'{"a": 1}')

    assert resp.status_code == 200
    assert [r.method for r in client.session.sent] == ["POST", "POST"]
    assert client.session.sent[0].headers["Content-Type"] == "application/json"
    assert client.session.bodies == [b'{"a": 1}', b'{"a": 1}']


def test_head_uses_head_method(sleeps):
    client = _client([200])
    client.head(URL)
    assert client.session.sent[0].method == "HEAD"


def test_send_uses_streaming_and_timeout(sleeps):
    client = _client([200])
    client.timeout = 5.0

    client.get(URL)

    kwargs = client.session.send_kwargs[0]
    assert kwargs["stream"] is True
    assert kwargs["timeout"] == 5.0


def test_deadline_bounds_attempt_timeout(sleeps):
    client = _client([200])
    client.timeout = 60.0
    request = client.new_request("GET", URL, context=RequestContext.with_timeout(10.0))

    client.do(request)

    assert 0 < client.session.send_kwargs[0]["timeout"] <= 10.0


def test_expired_deadline_prevents_any_attempt(sleeps):
    client = _client([200])
    request = client.new_request("GET", URL, context=RequestContext.with_timeout(0))

    with pytest.raises(RequestCancelledError, match="deadline exceeded"):
        client.do(request)

    assert client.session.attempts == 0


def test_cancel_during_backoff_raises_cancellation():
    client = _client([503], retry_max=3, retry_wait_min=30.0)
    context = RequestContext()
    request = client.new_request("GET", URL, context=context)
    timer = threading.Timer(0.05, context.cancel)

    started = time.monotonic()
    timer.start()
    try:
        with pytest.raises(RequestCancelledError) as exc_info:
            client.do(request)
    finally:
        timer.cancel()

    assert time.monotonic() - started < 10
    assert exc_info.value.reason == "cancelled"
    assert client.session.attempts == 1


def test_transport_error_after_cancel_raises_cancellation(sleeps):
    context = RequestContext()

    def cancel_then_fail():
        context.cancel()
        return requests.ConnectionError("aborted")

    client = _client([cancel_then_fail], retry_max=3)
    request = client.new_request("GET", URL, context=context)

    with pytest.raises(RequestCancelledError) as exc_info:
        client.do(request)

    assert isinstance(exc_info.value.__cause__, requests.ConnectionError)
    assert client.session.attempts == 1


def test_cancel_during_last_attempt_beats_exhaustion(sleeps):
    context = RequestContext()

    def cancel_then_503():
        context.cancel()
        return make_response(503, body=b"busy")

    client = _client([cancel_then_503], retry_max=0)
    request = client.new_request("GET", URL, context=context)

    with pytest.raises(RequestCancelledError) as exc_info:
        client.do(request)

    assert exc_info.value.reason == "cancelled"
    assert client.session.attempts == 1


def test_backoff_not_consulted_after_final_attempt(sleeps):
    calls = []

    def backoff(min_wait, max_wait, attempt, response):
        calls.append(attempt)
        return 0.0

    client = _client([503], retry_max=2, backoff=backoff)

    with pytest.raises(RetryExhaustedError):
        client.get(URL)

    assert calls == [0, 1]


def test_backoff_not_consulted_when_retry_max_zero(sleeps):
    calls = []
    client = _client([503], retry_max=0, backoff=lambda *args: calls.append(args) or 0.0)

    with pytest.raises(RetryExhaustedError):
        client.get(URL)

    assert calls == []


def test_client_defaults():
    client = Client()
    try:
        assert client.config.retry_wait_min == 1.0
        assert client.config.retry_wait_max == 30.0
        assert client.config.retry_max == 4
        assert client.config.check_for_retry is default_retry_policy
        assert isinstance(client.session, requests.Session)
    finally:
        client.close()


def test_context_manager_closes_session(monkeypatch):
    session = FakeSession([200])
    closed = []
    monkeypatch.setattr(session, "close", lambda: closed.append(True))

    with Client(session=session):
        pass

    assert closed == [True]
