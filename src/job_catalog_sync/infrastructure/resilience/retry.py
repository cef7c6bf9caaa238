"""Retry with exponential backoff and jitter."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

from job_catalog_sync.domain.errors import TransientUpstreamError

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
SleepFunction = Callable[[float], Awaitable[None]]
RetryCallback = Callable[[BaseException, int, float], None]

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Backoff parameters. `max_attempts` counts the first call."""

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    multiplier: float = 2.0
    jitter_ratio: float = 0.3

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1.")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0.")
        if self.max_delay_seconds < self.initial_delay_seconds:
            raise ValueError("max_delay_seconds must be >= initial_delay_seconds.")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1.")
        if not 0 <= self.jitter_ratio <= 1:
            raise ValueError("jitter_ratio must be within [0, 1].")


def backoff_delay(policy: RetryPolicy, attempt: int) -> float:
    """Return the pre-jitter delay after failed attempt number `attempt` (1-based)."""

    exponent = max(attempt - 1, 0)
    return min(policy.initial_delay_seconds * policy.multiplier**exponent, policy.max_delay_seconds)


def jittered_delay(
    policy: RetryPolicy,
    attempt: int,
    rng: Callable[[], float] = random.random,
) -> float:
    """Return the backoff delay plus up to `jitter_ratio` of it."""

    delay = backoff_delay(policy, attempt)
    return delay + delay * policy.jitter_ratio * rng()


def is_retryable_error(error: BaseException) -> bool:
    """Network-level failures and 429/500/502/503/504 responses are retryable."""

    if isinstance(error, TransientUpstreamError):
        return error.status_code is None or error.status_code in RETRYABLE_STATUS_CODES
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(error, httpx.TransportError)


async def retry_async(
    operation: Operation[T],
    policy: RetryPolicy,
    *,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    sleep: SleepFunction = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    on_retry: RetryCallback | None = None,
) -> T:
    """Run `operation`, retrying retryable failures. The last error surfaces unchanged."""

    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= policy.max_attempts or not is_retryable(exc):
                raise
            delay = jittered_delay(policy, attempt, rng)
            if on_retry is not None:
                on_retry(exc, attempt, delay)
            else:
                logger.warning(
                    "Attempt %s/%s failed: %s. Retrying in %.2fs.",
                    attempt,
                    policy.max_attempts,
                    exc,
                    delay,
                )
            await sleep(delay)
            attempt += 1


def retrying(
    policy: RetryPolicy,
    *,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    sleep: SleepFunction = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    on_retry: RetryCallback | None = None,
) -> Callable[[Operation[T]], Operation[T]]:
    """Return a wrapper that turns an operation into its retrying equivalent."""

    def wrap(operation: Operation[T]) -> Operation[T]:
        async def run() -> T:
            return await retry_async(
                operation,
                policy,
                is_retryable=is_retryable,
                sleep=sleep,
                rng=rng,
                on_retry=on_retry,
            )

        return run

    return wrap


def compose(
    operation: Operation[T],
    *wrappers: Callable[[Operation[T]], Operation[T]],
) -> Operation[T]:
    """Apply wrappers innermost first: `compose(op, a, b)` is `b(a(op))`."""

    wrapped = operation
    for wrapper in wrappers:
        wrapped = wrapper(wrapped)
    return wrapped


__all__ = [
    "RETRYABLE_STATUS_CODES",
    "Operation",
    "RetryPolicy",
    "backoff_delay",
    "compose",
    "is_retryable_error",
    "jittered_delay",
    "retry_async",
    "retrying",
]
