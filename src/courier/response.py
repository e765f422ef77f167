"""Response values: status codes and immutable HTTP responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, ClassVar

from courier._http import DEFAULT_CHARSET

if TYPE_CHECKING:
    from courier.outcome import Outcome

type Header = tuple[str, str]
type Headers = tuple[Header, ...]


class ResponseCode(int):
    """An HTTP status code.

    Compares and hashes like the plain ``int`` so handlers can be registered
    with either form. Codes outside the standard registry are allowed.
    """

    OK: ClassVar[ResponseCode]
    CREATED: ClassVar[ResponseCode]
    ACCEPTED: ClassVar[ResponseCode]
    NO_CONTENT: ClassVar[ResponseCode]
    MOVED_PERMANENTLY: ClassVar[ResponseCode]
    FOUND: ClassVar[ResponseCode]
    NOT_MODIFIED: ClassVar[ResponseCode]
    BAD_REQUEST: ClassVar[ResponseCode]
    UNAUTHORIZED: ClassVar[ResponseCode]
    FORBIDDEN: ClassVar[ResponseCode]
    NOT_FOUND: ClassVar[ResponseCode]
    CONFLICT: ClassVar[ResponseCode]
    INTERNAL_SERVER_ERROR: ClassVar[ResponseCode]
    BAD_GATEWAY: ClassVar[ResponseCode]
    SERVICE_UNAVAILABLE: ClassVar[ResponseCode]

    def __new__(cls, code: int) -> ResponseCode:
        if isinstance(code, bool) or not isinstance(code, int):
            raise TypeError(f"response code must be an int, got {code!r}")
        if not 100 <= code <= 599:
            raise ValueError(f"response code out of range: {code}")
        return super().__new__(cls, code)

    @classmethod
    def of(cls, code: int | ResponseCode) -> ResponseCode:
        return code if isinstance(code, ResponseCode) else cls(code)

    @property
    def code(self) -> int:
        return int(self)

    @property
    def reason(self) -> str:
        try:
            return HTTPStatus(int(self)).phrase
        except ValueError:
            return ""

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        return self >= 400

    def __repr__(self) -> str:
        return f"ResponseCode({int(self)})"

    __str__ = int.__repr__


for _name in (
    "OK",
    "CREATED",
    "ACCEPTED",
    "NO_CONTENT",
    "MOVED_PERMANENTLY",
    "FOUND",
    "NOT_MODIFIED",
    "BAD_REQUEST",
    "UNAUTHORIZED",
    "FORBIDDEN",
    "NOT_FOUND",
    "CONFLICT",
    "INTERNAL_SERVER_ERROR",
    "BAD_GATEWAY",
    "SERVICE_UNAVAILABLE",
):
    setattr(ResponseCode, _name, ResponseCode(HTTPStatus[_name].value))
del _name


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """An immutable HTTP response produced by one transport call."""

    code: ResponseCode
    headers: Headers = ()
    body: bytes = b""
    #: When the response was received; not part of equality.
    timestamp: datetime = field(default_factory=_now, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", ResponseCode.of(self.code))
        object.__setattr__(self, "headers", tuple(tuple(h) for h in self.headers))
        if isinstance(self.body, str):
            object.__setattr__(self, "body", self.body.encode(DEFAULT_CHARSET))

    def header(self, name: str) -> str | None:
        """Return the first header value named *name* (case-insensitive)."""
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return None

    @property
    def charset(self) -> str:
        """Charset from the Content-Type header, or UTF-8 when absent."""
        content_type = self.header("content-type") or ""
        for param in content_type.split(";")[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"').lower()
        return DEFAULT_CHARSET

    def body_string(self, charset: str | None = None) -> str:
        return self.body.decode(charset or self.charset)

    def body_as(self, model: Any = Any, charset: str | None = None) -> Outcome[Any]:
        """Decode the body as JSON into *model*.

        Returns a ``Failure`` with the decoder's error when the body is not
        valid JSON for *model*.
        """
        from courier.codec import decode_json

        return decode_json(self.body, model, charset or self.charset)

    def to_json(self, *, pretty: bool = False) -> str:
        from courier.codec import response_to_json

        return response_to_json(self, pretty=pretty)

    @staticmethod
    def from_json(document: str | bytes) -> Outcome[HttpResponse]:
        from courier.codec import response_from_json

        return response_from_json(document)
