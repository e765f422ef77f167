"""Minimal async retry with explicit error contracts.

Retries cover transport failures only. A response, whatever its status code,
is never retried here; deciding what a code means is the handler chain's job.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import random
import time
from typing import TYPE_CHECKING, TypeVar

import httpx

from courier.errors import TransportError, _walk_exception_chain

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy with exponential backoff and optional jitter."""

    # Defaults are intentionally conservative: retries should help without
    # surprising tail-latency.
    max_attempts: int = 2
    initial_delay_s: float = 0.5
    backoff_multiplier: float = 2.0
    max_delay_s: float = 5.0
    jitter: bool = True  # "full jitter" when enabled
    max_elapsed_s: float | None = 15.0

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy.max_attempts must be >= 1")
        if self.initial_delay_s < 0:
            raise ValueError("RetryPolicy.initial_delay_s must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("RetryPolicy.backoff_multiplier must be > 0")
        if self.max_delay_s < 0:
            raise ValueError("RetryPolicy.max_delay_s must be >= 0")
        if self.max_elapsed_s is not None and self.max_elapsed_s < 0:
            raise ValueError("RetryPolicy.max_elapsed_s must be >= 0 or None")


def _is_transient_network_error(exc: BaseException) -> bool:
    for e in _walk_exception_chain(exc):
        if isinstance(e, (TimeoutError, httpx.TimeoutException, httpx.TransportError)):
            return True
    return False


def _is_connect_failure(exc: BaseException) -> bool:
    for e in _walk_exception_chain(exc):
        if isinstance(e, TransportError) and e.phase == "connect":
            return True
        if isinstance(e, (httpx.ConnectError, httpx.ConnectTimeout)):
            return True
    return False


def should_retry_idempotent(exc: BaseException) -> bool:
    """Return True when an idempotent request (GET/HEAD/PUT/DELETE) should be retried.

    Contract:
    - Cancellation is never retried.
    - TransportError is retried unless the transport marked it non-retryable.
    - Raw timeouts and httpx transport errors are retried as a fallback.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False

    if isinstance(exc, TransportError):
        return exc.retryable is not False
    return _is_transient_network_error(exc)


def should_retry_side_effect(exc: BaseException) -> bool:
    """Return True when a non-idempotent request (POST) should be retried.

    Repeating a request the server may already have processed can duplicate
    its effect, so only failures that happened before the request left the
    client (connect phase) are retried.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, TransportError) and exc.retryable is False:
        return False
    return _is_connect_failure(exc)


def _compute_backoff_delay(policy: RetryPolicy, *, retry_index: int) -> float:
    # retry_index starts at 1 for the first retry sleep.
    base = policy.initial_delay_s * (
        policy.backoff_multiplier ** max(0, retry_index - 1)
    )
    base = min(policy.max_delay_s, base)
    if base <= 0:
        return 0.0
    if not policy.jitter:
        return base
    # Full jitter: random in [0, base] to avoid thundering herd.
    return random.random() * base  # noqa: S311


async def retry_async(
    factory: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool] = should_retry_idempotent,
) -> T:
    """Run an async factory with bounded retries."""
    start = time.monotonic()
    last_exc: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await factory()
        except Exception as exc:
            last_exc = exc
            if not should_retry(exc) or attempt >= policy.max_attempts:
                raise

            delay = _compute_backoff_delay(policy, retry_index=attempt)
            if policy.max_elapsed_s is not None:
                remaining = policy.max_elapsed_s - (time.monotonic() - start)
                if remaining <= 0:
                    raise
                delay = min(delay, remaining)

            log.debug(
                "Attempt %d/%d failed (%s); retrying in %.2fs",
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            if delay > 0:
                await asyncio.sleep(delay)

    # Defensive: loop should always return or raise.
    if last_exc is None:  # pragma: no cover
        raise RuntimeError("retry_async exhausted without an exception")
    raise last_exc
