"""Transport: the ``HttpClient`` protocol and its httpx implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from courier.config import Config
from courier.errors import TransportError
from courier.request import (
    DeleteRequest,
    GetRequest,
    HeadRequest,
    HttpRequestWithBody,
    PostRequest,
    PutRequest,
)
from courier.response import HttpResponse, ResponseCode
from courier.retry import (
    retry_async,
    should_retry_idempotent,
    should_retry_side_effect,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from courier.request import HttpRequest
    from courier.response import Header

log = logging.getLogger(__name__)


@runtime_checkable
class HttpClient(Protocol):
    """Minimal transport protocol: turn a request into a response."""

    async def send(self, request: HttpRequest) -> HttpResponse:
        """Perform *request* and return the response, whatever its code."""
        ...


class RequestFactoryMixin:
    """Request factories that bind the created request to ``self``."""

    def get(self, url: str, headers: Iterable[Header] = ()) -> GetRequest:
        return GetRequest(url, tuple(headers), self)  # type: ignore[arg-type]

    def head(self, url: str, headers: Iterable[Header] = ()) -> HeadRequest:
        return HeadRequest(url, tuple(headers), self)  # type: ignore[arg-type]

    def delete(self, url: str, headers: Iterable[Header] = ()) -> DeleteRequest:
        return DeleteRequest(url, tuple(headers), self)  # type: ignore[arg-type]

    def post(
        self, url: str, body: bytes | str = b"", headers: Iterable[Header] = ()
    ) -> PostRequest:
        return PostRequest(url, tuple(headers), self, body)  # type: ignore[arg-type]

    def put(
        self, url: str, body: bytes | str = b"", headers: Iterable[Header] = ()
    ) -> PutRequest:
        return PutRequest(url, tuple(headers), self, body)  # type: ignore[arg-type]


def wrap_transport_error(exc: BaseException, request: HttpRequest) -> TransportError:
    """Map an httpx exception into a TransportError with retry metadata."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, TransportError):
        return exc

    connect_failure = isinstance(exc, httpx.ConnectError | httpx.ConnectTimeout)
    phase = "connect" if connect_failure else "send"
    retryable = isinstance(exc, httpx.TransportError)
    hint = None
    if isinstance(exc, httpx.TimeoutException):
        hint = "Raise Config.timeout_s if the server is slow to answer."
    elif isinstance(exc, httpx.UnsupportedProtocol | httpx.InvalidURL):
        retryable = False
        hint = "Check the request URL (scheme and host are required)."

    cause = str(exc)
    message = f"{request.method} {request.url} failed ({type(exc).__name__})"
    return TransportError(
        f"{message}: {cause}" if cause else message,
        hint=hint,
        method=request.method,
        url=request.url,
        retryable=retryable,
        phase=phase,
    )


class HttpxClient(RequestFactoryMixin):
    """``HttpClient`` backed by ``httpx.AsyncClient``.

    Every status code comes back as an ``HttpResponse``; only transport
    failures raise (as ``TransportError``). Idempotent requests retry any
    transient failure under ``Config.retry``; POST retries only failures that
    happened before the request was sent.

    Example:
        async with HttpxClient(Config(timeout_s=5.0)) as client:
            outcome = await client.get(url).expect_json_body(App)
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        **client_kwargs: Any,
    ) -> None:
        self._config = config or Config()
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout_s,
            follow_redirects=self._config.follow_redirects,
            headers={"User-Agent": self._config.user_agent},
            transport=transport,
            **client_kwargs,
        )

    @property
    def config(self) -> Config:
        return self._config

    async def send(self, request: HttpRequest) -> HttpResponse:
        """Send *request*, retrying transport failures per the retry policy."""
        content = request.body if isinstance(request, HttpRequestWithBody) else None
        headers = list(request.headers)

        async def _attempt() -> HttpResponse:
            log.debug("Sending %s %s", request.method, request.url)
            try:
                raw = await self._client.request(
                    request.method, request.url, headers=headers, content=content
                )
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise wrap_transport_error(exc, request) from exc
            log.debug(
                "Received %s for %s %s", raw.status_code, request.method, request.url
            )
            return HttpResponse(
                code=ResponseCode(raw.status_code),
                headers=tuple(raw.headers.multi_items()),
                body=raw.content,
            )

        should_retry = (
            should_retry_idempotent if request.idempotent else should_retry_side_effect
        )
        return await retry_async(
            _attempt, policy=self._config.retry, should_retry=should_retry
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpxClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            await self.aclose()
        except asyncio.CancelledError:
            raise
        except Exception as cleanup_exc:
            # Cleanup should never mask the primary failure.
            log.warning("Client cleanup failed: %s", cleanup_exc)
