"""Deferred: a suspended asynchronous computation.

A ``Deferred`` wraps a zero-argument coroutine factory. Building, mapping and
chaining a deferred never runs anything; the computation starts only when
the caller awaits it (or calls ``run_sync``). Every run invokes the factory
again, so side effects such as network calls repeat per run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Generator


@dataclass(frozen=True, slots=True)
class Deferred[T]:
    """An immutable, re-runnable asynchronous computation."""

    factory: Callable[[], Awaitable[T]]

    @classmethod
    def pure(cls, value: T) -> Deferred[T]:
        """Wrap an already-known value."""

        async def _value() -> T:
            return value

        return cls(_value)

    @classmethod
    def from_callable(cls, fn: Callable[[], T]) -> Deferred[T]:
        """Suspend a synchronous zero-argument callable."""

        async def _call() -> T:
            return fn()

        return cls(_call)

    async def run(self) -> T:
        """Perform the computation and return its value."""
        return await self.factory()

    def run_sync(self) -> T:
        """Perform the computation on a fresh event loop and block until done.

        Raises:
            RuntimeError: When called from inside a running event loop.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.run())
        raise RuntimeError(
            "Deferred.run_sync() cannot be called from a running event loop; "
            "await the deferred instead."
        )

    def map[U](self, fn: Callable[[T], U]) -> Deferred[U]:
        factory = self.factory

        async def _mapped() -> U:
            return fn(await factory())

        return Deferred(_mapped)

    def flat_map[U](self, fn: Callable[[T], Deferred[U]]) -> Deferred[U]:
        factory = self.factory

        async def _chained() -> U:
            return await fn(await factory()).run()

        return Deferred(_chained)

    def __await__(self) -> Generator[Any, None, T]:
        return self.run().__await__()
