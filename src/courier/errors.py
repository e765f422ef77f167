"""Exception hierarchy for Courier.

Sealed handler chains never raise these past the seal boundary; they reach
the caller as the ``error`` of a ``Failure``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from courier.response import ResponseCode


class CourierError(Exception):
    """Base exception for all Courier errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(CourierError):
    """Configuration validation or client binding failed."""


class InvariantViolationError(CourierError):
    """A response transform broke the Outcome contract."""


class SerializationError(CourierError):
    """A request or response JSON document could not be read."""


class UnhandledResponseCode(CourierError):
    """No registered handler matched the response code."""

    def __init__(self, code: ResponseCode) -> None:
        super().__init__(
            f"unhandled response code {int(code)}",
            hint="Register a handler for this code or use handle_errors().",
        )
        self.code = code


class JSONParsingError(CourierError):
    """The response body could not be decoded as the expected JSON type.

    The decoder's original error is kept on ``cause`` and chained as
    ``__cause__``.
    """

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"JSON parsing error: {cause}")
        self.cause = cause
        self.__cause__ = cause


class TransportError(CourierError):
    """The request could not be completed by the transport.

    ``phase`` is ``"connect"`` when the request never reached the server and
    ``"send"`` otherwise; retry decisions read it together with ``retryable``.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        method: str | None = None,
        url: str | None = None,
        retryable: bool | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.method = method
        self.url = url
        self.retryable = retryable
        self.phase = phase


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
