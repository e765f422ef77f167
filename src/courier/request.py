"""Request values: immutable GET/HEAD/DELETE/POST/PUT descriptions.

A request is plain data until it is prepared against a client. Preparing
returns a ``Deferred`` that performs the call each time it runs; the
chain-start methods (``handle_code``, ``expect_json_body``...) prepare the
request and begin a response handler chain in one step.

Example:
    async with HttpxClient() as client:
        outcome = await (
            client.get("https://api.example.com/apps/42")
            .expect_json_body(App)
            .handle_code(404, lambda _: Success(None))
        )
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, ClassVar

from courier._http import DEFAULT_CHARSET, IDEMPOTENT_METHODS
from courier.deferred import Deferred
from courier.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from courier.client import HttpClient
    from courier.codec import Decoder
    from courier.handlers import Predicate, ResponseHandler, Transform
    from courier.outcome import Outcome
    from courier.response import Header, Headers, HttpResponse, ResponseCode


def _normalize_headers(headers: Iterable[Header]) -> Headers:
    normalized: list[Header] = []
    for pair in headers:
        name, value = pair
        normalized.append((str(name), str(value)))
    return tuple(normalized)


@dataclass(frozen=True, slots=True)
class HttpRequest:
    """Base request value. Use the concrete subclasses or the factories."""

    method: ClassVar[str] = ""

    url: str
    headers: Headers = ()
    client: HttpClient | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _normalize_headers(self.headers))

    @property
    def idempotent(self) -> bool:
        return self.method in IDEMPOTENT_METHODS

    def add_headers(self, *headers: Header) -> HttpRequest:
        """Return a copy with *headers* appended after the existing ones."""
        return replace(self, headers=(*self.headers, *headers))

    def with_client(self, client: HttpClient) -> HttpRequest:
        return replace(self, client=client)

    def prepare(self, client: HttpClient | None = None) -> Deferred[HttpResponse]:
        """Return a deferred call of this request; nothing is sent yet.

        Raises:
            ConfigurationError: When no client is given and none is bound.
        """
        target = client if client is not None else self.client
        if target is None:
            raise ConfigurationError(
                f"No client bound to {self.method} {self.url}",
                hint="Create requests via client.get(...) or pass client=...",
            )
        request = self

        async def _send() -> HttpResponse:
            return await target.send(request)

        return Deferred(_send)

    async def execute(self, client: HttpClient | None = None) -> HttpResponse:
        return await self.prepare(client).run()

    def execute_sync(self, client: HttpClient | None = None) -> HttpResponse:
        """Send the request and block until the response arrives."""
        return self.prepare(client).run_sync()

    # -- chain start -------------------------------------------------------

    def handler(self) -> ResponseHandler[Any]:
        """Begin an empty response handler chain for this request."""
        from courier.handlers import handle_response

        return handle_response(self)

    def handle_codes_such_that[T](
        self, predicate: Predicate, transform: Transform[T]
    ) -> ResponseHandler[T]:
        return self.handler().handle_codes_such_that(predicate, transform)

    def handle_code[T](
        self, code: int | ResponseCode, transform: Transform[T]
    ) -> ResponseHandler[T]:
        return self.handler().handle_code(code, transform)

    def handle_codes[T](
        self, codes: Iterable[int | ResponseCode], transform: Transform[T]
    ) -> ResponseHandler[T]:
        return self.handler().handle_codes(codes, transform)

    def handle_errors[T](self, transform: Transform[T]) -> ResponseHandler[T]:
        return self.handler().handle_errors(transform)

    def expect_json_body_for_code(
        self,
        code: int | ResponseCode,
        model: Any = Any,
        *,
        decoder: Decoder[Any] | None = None,
        charset: str | None = None,
    ) -> ResponseHandler[Any]:
        return self.handler().expect_json_body_for_code(
            code, model, decoder=decoder, charset=charset
        )

    def expect_json_body(
        self,
        model: Any = Any,
        *,
        decoder: Decoder[Any] | None = None,
        charset: str | None = None,
    ) -> ResponseHandler[Any]:
        return self.handler().expect_json_body(model, decoder=decoder, charset=charset)

    def expect_no_content[T](self, success_value: T) -> ResponseHandler[T]:
        return self.handler().expect_no_content(success_value)

    # -- serialization -----------------------------------------------------

    def to_json(self, *, pretty: bool = False) -> str:
        from courier.codec import request_to_json

        return request_to_json(self, pretty=pretty)

    @staticmethod
    def from_json(
        document: str | bytes, *, client: HttpClient | None = None
    ) -> Outcome[HttpRequest]:
        """Read a request written by ``to_json``, optionally binding *client*."""
        from courier.codec import request_from_json

        return request_from_json(document, client=client)


@dataclass(frozen=True, slots=True)
class HttpRequestWithBody(HttpRequest):
    """A request carrying a raw body."""

    body: bytes = b""

    def __post_init__(self) -> None:
        super(HttpRequestWithBody, self).__post_init__()
        if isinstance(self.body, str):
            object.__setattr__(self, "body", self.body.encode(DEFAULT_CHARSET))


@dataclass(frozen=True, slots=True)
class GetRequest(HttpRequest):
    method: ClassVar[str] = "GET"


@dataclass(frozen=True, slots=True)
class HeadRequest(HttpRequest):
    method: ClassVar[str] = "HEAD"


@dataclass(frozen=True, slots=True)
class DeleteRequest(HttpRequest):
    method: ClassVar[str] = "DELETE"


@dataclass(frozen=True, slots=True)
class PostRequest(HttpRequestWithBody):
    method: ClassVar[str] = "POST"


@dataclass(frozen=True, slots=True)
class PutRequest(HttpRequestWithBody):
    method: ClassVar[str] = "PUT"


REQUEST_TYPES: dict[str, type[HttpRequest]] = {
    cls.method: cls
    for cls in (GetRequest, HeadRequest, DeleteRequest, PostRequest, PutRequest)
}


def GET(  # noqa: N802
    url: str, headers: Iterable[Header] = (), *, client: HttpClient | None = None
) -> GetRequest:
    return GetRequest(url, tuple(headers), client)


def HEAD(  # noqa: N802
    url: str, headers: Iterable[Header] = (), *, client: HttpClient | None = None
) -> HeadRequest:
    return HeadRequest(url, tuple(headers), client)


def DELETE(  # noqa: N802
    url: str, headers: Iterable[Header] = (), *, client: HttpClient | None = None
) -> DeleteRequest:
    return DeleteRequest(url, tuple(headers), client)


def POST(  # noqa: N802
    url: str,
    body: bytes | str = b"",
    headers: Iterable[Header] = (),
    *,
    client: HttpClient | None = None,
) -> PostRequest:
    return PostRequest(url, tuple(headers), client, body)  # type: ignore[arg-type]


def PUT(  # noqa: N802
    url: str,
    body: bytes | str = b"",
    headers: Iterable[Header] = (),
    *,
    client: HttpClient | None = None,
) -> PutRequest:
    return PutRequest(url, tuple(headers), client, body)  # type: ignore[arg-type]


__all__ = [
    "DELETE",
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "REQUEST_TYPES",
    "DeleteRequest",
    "GetRequest",
    "HeadRequest",
    "HttpRequest",
    "HttpRequestWithBody",
    "PostRequest",
    "PutRequest",
]
