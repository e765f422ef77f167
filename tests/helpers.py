"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off response sources as coverage expands.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from courier.deferred import Deferred
from courier.response import HttpResponse


@dataclass
class CountingSource:
    """Deferred response source that counts how often it was performed."""

    response: HttpResponse | BaseException
    calls: int = 0

    async def __call__(self) -> HttpResponse:
        self.calls += 1
        if isinstance(self.response, BaseException):
            raise self.response
        return self.response

    def deferred(self) -> Deferred[HttpResponse]:
        return Deferred(self)


@dataclass
class RecordingTransform:
    """Transform that records the responses it saw and returns a fixed outcome."""

    outcome: object
    seen: list[HttpResponse] = field(default_factory=list)

    def __call__(self, response: HttpResponse) -> object:
        self.seen.append(response)
        return self.outcome


def response(code: int, body: bytes | str = b"", **headers: str) -> HttpResponse:
    """Build a response with headers given as keyword arguments."""
    pairs = tuple((name.replace("_", "-"), value) for name, value in headers.items())
    return HttpResponse(code, headers=pairs, body=body)  # type: ignore[arg-type]
