"""Request model - a prepared HTTP request with a replayable body"""

from __future__ import annotations

import io
import logging
import re
from typing import IO, Mapping, Optional, Union

import requests

from httpretry.domain.errors import BodyRewindError, InvalidRequestError
from httpretry.domain.models.context import RequestContext

logger = logging.getLogger(__name__)

# RFC 9110 token characters
_METHOD_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")

BodyType = Union[bytes, str, IO[bytes], None]


class NonClosingReader:
    """Read/seek view over a body that ignores close()

    The transport sees this wrapper instead of the caller's file object so it
    can never close a body that must survive across attempts.
    """

    def __init__(self, raw: IO[bytes]):
        self._raw = raw

    def read(self, size: int = -1) -> bytes:
        return self._raw.read(size)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._raw.seek(offset, whence)

    def tell(self) -> int:
        return self._raw.tell()

    def close(self) -> None:
        pass

    @property
    def closed(self) -> bool:
        return False


class Request:
    """HTTP request handle consumed by ``Client.do``

    Holds the prepared request together with the caller's body so the body can
    be rewound before every attempt.
    """

    def __init__(
        self,
        prepared: requests.PreparedRequest,
        body: Optional[IO[bytes]] = None,
        context: Optional[RequestContext] = None,
    ):
        self.prepared = prepared
        self.body = body
        self.context = context or RequestContext.background()

    @property
    def method(self) -> str:
        return self.prepared.method

    @property
    def url(self) -> str:
        return self.prepared.url

    @property
    def headers(self):
        """Mutable, case-insensitive headers of the underlying request"""
        return self.prepared.headers

    def rewind(self) -> None:
        """Seek the body back to its start (no-op without a body)"""
        if self.body is not None:
            self.body.seek(0)

    def __repr__(self) -> str:
        return f"<Request [{self.method} {self.url}]>"


def _coerce_body(body: BodyType) -> Optional[IO[bytes]]:
    if body is None:
        return None
    if isinstance(body, str):
        body = body.encode("utf-8")
    if isinstance(body, (bytes, bytearray)):
        return io.BytesIO(body)
    if not (hasattr(body, "read") and hasattr(body, "seek")):
        raise InvalidRequestError(
            f"Request body must be bytes, str or a seekable file object, got {type(body).__name__}"
        )
    return body


def new_request(
    method: str,
    url: str,
    body: BodyType = None,
    *,
    context: Optional[RequestContext] = None,
    headers: Optional[Mapping[str, str]] = None,
    session: Optional[requests.Session] = None,
) -> Request:
    """Build a request handle

    Args:
        method: HTTP method (any valid token, e.g. "GET", "PROPFIND")
        url: Absolute target URL
        body: Optional bytes, str or seekable binary file object
        context: Cancellation/deadline context (background if None)
        headers: Extra request headers
        session: If given, session defaults (headers, auth, cookies) are merged in

    Returns:
        Request handle

    Raises:
        InvalidRequestError: If the method or URL is rejected
    """
    if not method or not _METHOD_RE.fullmatch(method):
        raise InvalidRequestError(f"Invalid HTTP method: {method!r}")

    raw_body = _coerce_body(body)
    data = None
    if raw_body is not None:
        try:
            raw_body.seek(0)
        except (OSError, ValueError) as e:
            raise BodyRewindError(f"failed to seek body: {e}") from e
        data = NonClosingReader(raw_body)

    req = requests.Request(method=method, url=url, headers=dict(headers or {}), data=data)
    try:
        if session is not None:
            prepared = session.prepare_request(req)
        else:
            prepared = req.prepare()
    except requests.exceptions.RequestException as e:
        raise InvalidRequestError(f"Invalid request {method} {url}: {e}") from e

    logger.debug(f"Prepared {method} {prepared.url}")
    return Request(prepared, raw_body, context)
