"""Outcome: the value-level result of a sealed handler chain.

Failures are data, not control flow. A sealed chain always yields either a
``Success`` carrying the handled value or a ``Failure`` carrying the error.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclasses.dataclass(frozen=True, slots=True)
class Success[T]:
    """A successfully handled response value."""

    value: T

    @property
    def is_success(self) -> bool:
        return True

    def map[U](self, fn: Callable[[T], U]) -> Outcome[U]:
        return Success(fn(self.value))

    def flat_map[U](self, fn: Callable[[T], Outcome[U]]) -> Outcome[U]:
        return fn(self.value)

    def map_failure(self, fn: Callable[[Exception], Exception]) -> Outcome[T]:  # noqa: ARG002
        return self

    def get_or_else(self, default: T) -> T:  # noqa: ARG002
        return self.value

    def unwrap(self) -> T:
        return self.value

    def fold[U](
        self,
        on_failure: Callable[[Exception], U],  # noqa: ARG002
        on_success: Callable[[T], U],
    ) -> U:
        return on_success(self.value)


@dataclasses.dataclass(frozen=True, slots=True)
class Failure:
    """A failed outcome, containing the error."""

    error: Exception

    @property
    def is_success(self) -> bool:
        return False

    def map(self, fn: Callable[[Any], Any]) -> Failure:  # noqa: ARG002
        return self

    def flat_map(self, fn: Callable[[Any], Any]) -> Failure:  # noqa: ARG002
        return self

    def map_failure(self, fn: Callable[[Exception], Exception]) -> Failure:
        return Failure(fn(self.error))

    def get_or_else[T](self, default: T) -> T:
        return default

    def unwrap(self) -> Any:
        """Raise the carried error."""
        raise self.error

    def fold[U](
        self,
        on_failure: Callable[[Exception], U],
        on_success: Callable[[Any], U],  # noqa: ARG002
    ) -> U:
        return on_failure(self.error)


type Outcome[T] = Success[T] | Failure


def is_outcome(value: object) -> bool:
    """Return True when *value* is a ``Success`` or ``Failure``."""
    return isinstance(value, Success | Failure)
