"""Response handlers: map response codes to typed outcomes.

A ``ResponseHandler`` pairs a deferred response source with an immutable
registry of ``(predicate, transform)`` entries. Every ``handle_*`` /
``expect_*`` call returns a new handler with one more entry; the receiver is
never modified, so a partially built chain can be forked freely.

Sealing turns the chain into a ``Deferred[Outcome[T]]``. When run it:

1. performs the response source,
2. picks the most recently registered entry whose predicate matches the
   response code (later registrations override earlier, broader ones),
3. returns that entry's outcome, or ``Failure(UnhandledResponseCode)`` when
   nothing matches.

Any exception raised on the way is returned as ``Failure(exc)``; this is the
only place exceptions become values. Awaiting a handler seals it implicitly.

Example:
    outcome = await (
        client.get(url)
        .handle_errors(lambda r: Failure(RuntimeError(r.body_string())))
        .expect_json_body(App)
        .handle_code(404, lambda _: Success(None))
    )
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, cast

from courier.codec import json_decoder
from courier.deferred import Deferred
from courier.errors import (
    InvariantViolationError,
    JSONParsingError,
    UnhandledResponseCode,
)
from courier.outcome import Failure, Success, is_outcome
from courier.request import HttpRequest
from courier.response import ResponseCode

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Generator, Iterable, Iterator

    from courier.codec import Decoder
    from courier.outcome import Outcome
    from courier.response import HttpResponse

log = logging.getLogger(__name__)

type Predicate = Callable[[ResponseCode], bool]
type Transform[T] = Callable[[HttpResponse], Outcome[T]]
type ResponseSource = (
    Deferred[HttpResponse] | HttpRequest | Callable[[], Awaitable[HttpResponse]]
)


@dataclass(frozen=True, slots=True)
class HandlerEntry[T]:
    """One registered ``(predicate, transform)`` pair."""

    matches: Predicate
    transform: Transform[T]


@dataclass(frozen=True, slots=True)
class _Link[T]:
    entry: HandlerEntry[T]
    previous: _Link[T] | None


@dataclass(frozen=True, slots=True)
class HandlerRegistry[T]:
    """Persistent, append-only list of handler entries.

    Stored newest-first as a linked list, so adding is O(1) and a child
    registry shares every earlier entry with its parent.
    """

    _head: _Link[T] | None = None
    _size: int = 0

    def add(self, predicate: Predicate, transform: Transform[T]) -> HandlerRegistry[T]:
        """Return a new registry with one more entry; ``self`` is unchanged."""
        link = _Link(HandlerEntry(predicate, transform), self._head)
        return HandlerRegistry(link, self._size + 1)

    def newest_first(self) -> Iterator[HandlerEntry[T]]:
        link = self._head
        while link is not None:
            yield link.entry
            link = link.previous

    def __iter__(self) -> Iterator[HandlerEntry[T]]:
        """Iterate entries in registration order."""
        return reversed(list(self.newest_first()))

    def __len__(self) -> int:
        return self._size

    def find(self, code: ResponseCode) -> HandlerEntry[T] | None:
        """Return the most recently registered entry matching *code*."""
        for entry in self.newest_first():
            if entry.matches(code):
                return entry
        return None

    def dispatch(self, response: HttpResponse) -> Outcome[T]:
        """Apply the winning entry to *response*.

        Raises:
            InvariantViolationError: If the transform does not return an
                Outcome. Inside a sealed chain this becomes a ``Failure``.
        """
        entry = self.find(response.code)
        if entry is None:
            log.debug("No handler registered for response code %s", response.code)
            return Failure(UnhandledResponseCode(response.code))

        result = entry.transform(response)
        # Guard: transforms must return Success|Failure
        if not is_outcome(result):
            raise InvariantViolationError(
                f"Handler for response code {response.code} returned "
                f"{type(result).__name__}; expected Success|Failure.",
                hint="Wrap the transform's value in Success(...) or Failure(...).",
            )
        return cast("Outcome[T]", result)


def seal[T](
    registry: HandlerRegistry[T], source: Deferred[HttpResponse]
) -> Deferred[Outcome[T]]:
    """Combine *registry* and *source* into one deferred outcome."""

    async def _sealed() -> Outcome[T]:
        try:
            response = await source.run()
            return registry.dispatch(response)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.warning("Response handling failed: %s: %s", type(exc).__name__, exc)
            return Failure(exc)

    return Deferred(_sealed)


def _code_equals(code: ResponseCode) -> Predicate:
    def _matches(candidate: ResponseCode) -> bool:
        return candidate == code

    return _matches


def _is_error(code: ResponseCode) -> bool:
    return code >= 400


@dataclass(frozen=True, slots=True)
class ResponseHandler[T]:
    """Immutable builder over a response source and its handler registry."""

    source: Deferred[HttpResponse]
    registry: HandlerRegistry[T] = HandlerRegistry()

    def handle_codes_such_that(
        self, predicate: Predicate, transform: Transform[T]
    ) -> ResponseHandler[T]:
        """Add a handler applied when *predicate* accepts the response code."""
        return ResponseHandler(self.source, self.registry.add(predicate, transform))

    def handle_code(
        self, code: int | ResponseCode, transform: Transform[T]
    ) -> ResponseHandler[T]:
        """Add a handler for exactly *code*."""
        matches = _code_equals(ResponseCode.of(code))
        return self.handle_codes_such_that(matches, transform)

    def handle_codes(
        self, codes: Iterable[int | ResponseCode], transform: Transform[T]
    ) -> ResponseHandler[T]:
        """Add a handler for any of *codes*."""
        accepted = frozenset(int(c) for c in codes)
        return self.handle_codes_such_that(lambda c: c in accepted, transform)

    def handle_errors(self, transform: Transform[T]) -> ResponseHandler[T]:
        """Add a handler for every error response (code >= 400)."""
        return self.handle_codes_such_that(_is_error, transform)

    def expect_json_body_for_code(
        self,
        code: int | ResponseCode,
        model: Any = Any,
        *,
        decoder: Decoder[T] | None = None,
        charset: str | None = None,
    ) -> ResponseHandler[T]:
        """Expect *code* with a JSON body readable as *model*.

        A body that does not decode yields ``Failure(JSONParsingError)`` with
        the decoder's error preserved on ``cause``. Calling this again for the
        same code simply overrides the earlier registration.

        Args:
            code: Response code carrying the expected body.
            model: Type the body is validated against (see ``decode_json``).
            decoder: Custom decoder; replaces the pydantic decoder for *model*.
            charset: Body encoding. Defaults to the response's Content-Type
                charset, then UTF-8.
        """
        decode = decoder if decoder is not None else json_decoder(model)

        def _transform(response: HttpResponse) -> Outcome[T]:
            outcome = decode(response.body, charset or response.charset)
            return outcome.map_failure(JSONParsingError)

        return self.handle_code(code, _transform)

    def expect_json_body(
        self,
        model: Any = Any,
        *,
        decoder: Decoder[T] | None = None,
        charset: str | None = None,
    ) -> ResponseHandler[T]:
        """Expect a ``200 OK`` response with a JSON body readable as *model*."""
        return self.expect_json_body_for_code(
            ResponseCode.OK, model, decoder=decoder, charset=charset
        )

    def expect_no_content(self, success_value: T) -> ResponseHandler[T]:
        """Succeed with *success_value* on ``204 No Content``, ignoring the body."""
        return self.handle_code(
            ResponseCode.NO_CONTENT, lambda _response: Success(success_value)
        )

    def seal(self) -> Deferred[Outcome[T]]:
        return seal(self.registry, self.source)

    async def run(self) -> Outcome[T]:
        return await self.seal().run()

    def run_sync(self) -> Outcome[T]:
        """Seal, perform and block for the outcome (outside an event loop)."""
        return self.seal().run_sync()

    def __await__(self) -> Generator[Any, None, Outcome[T]]:
        return self.seal().run().__await__()


def _as_deferred(source: ResponseSource) -> Deferred[HttpResponse]:
    if isinstance(source, Deferred):
        return source
    if isinstance(source, HttpRequest):
        return source.prepare()
    if callable(source):
        return Deferred(source)
    raise TypeError(
        "response source must be a Deferred, an HttpRequest or an async callable, "
        f"got {type(source).__name__}"
    )


def handle_response(source: ResponseSource) -> ResponseHandler[Any]:
    """Start a handler chain from *source* with no handlers registered."""
    return ResponseHandler(_as_deferred(source))


__all__ = [
    "HandlerEntry",
    "HandlerRegistry",
    "Predicate",
    "ResponseHandler",
    "ResponseSource",
    "Transform",
    "handle_response",
    "seal",
]
