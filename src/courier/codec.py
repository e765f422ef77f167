"""JSON helpers: body decoding and request/response documents.

Body decoding is delegated to pydantic. ``decode_json`` never raises for bad
input; the decoder's error comes back as the ``error`` of a ``Failure`` so
callers (notably ``expect_json_body``) can re-wrap it.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import replace
from datetime import datetime
from functools import lru_cache
import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, TypeAdapter, ValidationError

from courier._http import DEFAULT_CHARSET
from courier.errors import SerializationError
from courier.outcome import Failure, Outcome, Success
from courier.request import REQUEST_TYPES, HttpRequestWithBody
from courier.response import HttpResponse, ResponseCode

if TYPE_CHECKING:
    from collections.abc import Callable

    from courier.client import HttpClient
    from courier.request import HttpRequest

log = logging.getLogger(__name__)

type Decoder[T] = Callable[[bytes, str], Outcome[T]]


@lru_cache(maxsize=256)
def _adapter(model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model)


def _adapter_for(model: Any) -> TypeAdapter[Any]:
    try:
        return _adapter(model)
    except TypeError:
        # Unhashable type expressions cannot be cached.
        return TypeAdapter(model)


def decode_json(
    body: bytes, model: Any = Any, charset: str = DEFAULT_CHARSET
) -> Outcome[Any]:
    """Decode *body* as JSON and validate it against *model*.

    Args:
        body: Raw response body.
        model: Any type pydantic can validate (a ``BaseModel``, dataclass,
            ``TypedDict``, ``list[int]``...). ``Any`` returns plain JSON data.
        charset: Text encoding of *body*.

    Returns:
        ``Success`` with the validated value, or ``Failure`` carrying the
        ``ValidationError`` / ``UnicodeDecodeError`` / ``LookupError``.
    """
    try:
        text = body.decode(charset)
        return Success(_adapter_for(model).validate_json(text))
    except (ValidationError, UnicodeDecodeError, LookupError) as exc:
        log.debug("JSON body did not decode as %r: %s", model, exc)
        return Failure(exc)


def json_decoder[T](model: type[T] | Any = Any) -> Decoder[T]:
    """Return a reusable decoder bound to *model*."""
    adapter = _adapter_for(model)

    def _decode(body: bytes, charset: str) -> Outcome[T]:
        try:
            return Success(adapter.validate_json(body.decode(charset)))
        except (ValidationError, UnicodeDecodeError, LookupError) as exc:
            return Failure(exc)

    return _decode


# =============================================================================
# Request / response documents
# =============================================================================


class _Body(BaseModel):
    encoding: Literal["utf-8", "base64"] = "utf-8"
    data: str = ""

    @classmethod
    def wrap(cls, raw: bytes) -> _Body:
        try:
            return cls(data=raw.decode("utf-8"))
        except UnicodeDecodeError:
            return cls(encoding="base64", data=base64.b64encode(raw).decode("ascii"))

    def unwrap(self) -> bytes:
        if self.encoding == "base64":
            return base64.b64decode(self.data, validate=True)
        return self.data.encode("utf-8")


class _RequestDocument(BaseModel):
    method: str
    url: str
    headers: list[tuple[str, str]] = []
    body: _Body | None = None


class _ResponseDocument(BaseModel):
    code: int
    headers: list[tuple[str, str]] = []
    body: _Body = _Body()
    timestamp: str | None = None


def _dump(document: BaseModel, *, pretty: bool) -> str:
    return document.model_dump_json(indent=2 if pretty else None, exclude_none=True)


def request_to_json(request: HttpRequest, *, pretty: bool = False) -> str:
    body = (
        _Body.wrap(request.body) if isinstance(request, HttpRequestWithBody) else None
    )
    document = _RequestDocument(
        method=request.method,
        url=request.url,
        headers=list(request.headers),
        body=body,
    )
    return _dump(document, pretty=pretty)


def request_from_json(
    document: str | bytes, *, client: HttpClient | None = None
) -> Outcome[HttpRequest]:
    try:
        parsed = _RequestDocument.model_validate_json(document)
        cls = REQUEST_TYPES.get(parsed.method.upper())
        if cls is None:
            return Failure(
                SerializationError(
                    f"Unknown request method: {parsed.method!r}",
                    hint=f"Supported methods: {', '.join(sorted(REQUEST_TYPES))}",
                )
            )
        headers = tuple(parsed.headers)
        if issubclass(cls, HttpRequestWithBody):
            raw = parsed.body.unwrap() if parsed.body is not None else b""
            return Success(cls(parsed.url, headers, client, raw))
        return Success(cls(parsed.url, headers, client))
    except (ValidationError, binascii.Error) as exc:
        err = SerializationError(f"Malformed request document: {exc}")
        err.__cause__ = exc
        return Failure(err)


def response_to_json(response: HttpResponse, *, pretty: bool = False) -> str:
    document = _ResponseDocument(
        code=int(response.code),
        headers=list(response.headers),
        body=_Body.wrap(response.body),
        timestamp=response.timestamp.isoformat(),
    )
    return _dump(document, pretty=pretty)


def response_from_json(document: str | bytes) -> Outcome[HttpResponse]:
    try:
        parsed = _ResponseDocument.model_validate_json(document)
        response = HttpResponse(
            code=ResponseCode(parsed.code),
            headers=tuple(parsed.headers),
            body=parsed.body.unwrap(),
        )
        if parsed.timestamp is not None:
            response = replace(
                response, timestamp=datetime.fromisoformat(parsed.timestamp)
            )
        return Success(response)
    except (ValidationError, binascii.Error, TypeError, ValueError) as exc:
        err = SerializationError(f"Malformed response document: {exc}")
        err.__cause__ = exc
        return Failure(err)
