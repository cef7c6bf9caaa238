"""Circuit breaker shared by every call site of one upstream dependency."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TypeVar

from job_catalog_sync.domain.errors import (
    CircuitOpenError,
    PermanentUpstreamError,
    UpstreamAuthenticationError,
)

T = TypeVar("T")

StateChangeCallback = Callable[[str, "CircuitState", "CircuitState"], None]

logger = logging.getLogger(__name__)


class CircuitState(StrEnum):
    """Breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(slots=True, frozen=True)
class CircuitBreakerPolicy:
    """Thresholds for opening and closing the circuit."""

    failure_threshold: int = 5
    reset_timeout_seconds: float = 30.0
    success_threshold: int = 2
    half_open_max_calls: int = 1

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1.")
        if self.reset_timeout_seconds < 0:
            raise ValueError("reset_timeout_seconds must be >= 0.")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be >= 1.")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be >= 1.")


@dataclass(slots=True, frozen=True)
class CircuitSnapshot:
    """Point-in-time view of one breaker for the status surface."""

    dependency: str
    state: CircuitState
    failure_count: int
    success_count: int
    retry_at: datetime | None


@dataclass(slots=True, frozen=True)
class _Admission:
    generation: int
    trial: bool


def counts_as_failure(error: BaseException) -> bool:
    """Client-side rejections say nothing about the dependency's health."""

    return not isinstance(
        error,
        (PermanentUpstreamError, CircuitOpenError, UpstreamAuthenticationError),
    )


class CircuitBreaker:
    """Closed/Open/HalfOpen breaker. Counters reset on every state transition."""

    def __init__(
        self,
        dependency: str,
        policy: CircuitBreakerPolicy | None = None,
        *,
        is_failure: Callable[[BaseException], bool] = counts_as_failure,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: StateChangeCallback | None = None,
    ) -> None:
        self._dependency = dependency
        self._policy = policy or CircuitBreakerPolicy()
        self._is_failure = is_failure
        self._clock = clock
        self._on_state_change = on_state_change
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._trials_in_flight = 0
        self._opened_at: float | None = None
        self._generation = 0

    @property
    def dependency(self) -> str:
        """Dependency name guarded by this breaker."""

        return self._dependency

    @property
    def state(self) -> CircuitState:
        """Current state. `Open` turns into `HalfOpen` lazily, on the next call."""

        with self._lock:
            return self._state

    def snapshot(self) -> CircuitSnapshot:
        """Return state and counters."""

        with self._lock:
            retry_at = None
            if self._state is CircuitState.OPEN and self._opened_at is not None:
                remaining = self._opened_at + self._policy.reset_timeout_seconds - self._clock()
                retry_at = datetime.now(tz=UTC) + timedelta(seconds=max(remaining, 0.0))
            return CircuitSnapshot(
                dependency=self._dependency,
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                retry_at=retry_at,
            )

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run one attempt of `operation` under breaker accounting."""

        admission = self._admit()
        try:
            result = await operation()
        except asyncio.CancelledError:
            self._release(admission)
            raise
        except Exception as exc:
            if self._is_failure(exc):
                self._record_failure(admission)
            else:
                self._release(admission)
            raise
        self._record_success(admission)
        return result

    def guard(self, operation: Callable[[], Awaitable[T]]) -> Callable[[], Awaitable[T]]:
        """Return `operation` wrapped so every invocation passes through the breaker."""

        async def run() -> T:
            return await self.call(operation)

        return run

    def _admit(self) -> _Admission:
        transition = None
        with self._lock:
            if self._state is CircuitState.OPEN:
                assert self._opened_at is not None
                retry_after = self._opened_at + self._policy.reset_timeout_seconds
                now = self._clock()
                if now < retry_after:
                    retry_at = datetime.now(tz=UTC) + timedelta(seconds=retry_after - now)
                    raise CircuitOpenError(self._dependency, retry_at)
                transition = self._transition(CircuitState.HALF_OPEN)

            if self._state is CircuitState.HALF_OPEN:
                if self._trials_in_flight >= self._policy.half_open_max_calls:
                    raise CircuitOpenError(self._dependency)
                self._trials_in_flight += 1
                admission = _Admission(generation=self._generation, trial=True)
            else:
                admission = _Admission(generation=self._generation, trial=False)
        self._notify(transition)
        return admission

    def _record_success(self, admission: _Admission) -> None:
        transition = None
        with self._lock:
            if admission.generation != self._generation:
                return
            if self._state is CircuitState.HALF_OPEN:
                self._trials_in_flight -= 1
                self._success_count += 1
                if self._success_count >= self._policy.success_threshold:
                    transition = self._transition(CircuitState.CLOSED)
            else:
                self._failure_count = 0
        self._notify(transition)

    def _record_failure(self, admission: _Admission) -> None:
        transition = None
        with self._lock:
            if admission.generation != self._generation:
                return
            if self._state is CircuitState.HALF_OPEN:
                transition = self._transition(CircuitState.OPEN)
            else:
                self._failure_count += 1
                if self._failure_count >= self._policy.failure_threshold:
                    transition = self._transition(CircuitState.OPEN)
        self._notify(transition)

    def _release(self, admission: _Admission) -> None:
        with self._lock:
            if admission.trial and admission.generation == self._generation:
                self._trials_in_flight -= 1

    def _transition(self, new_state: CircuitState) -> tuple[CircuitState, CircuitState]:
        # Caller holds the lock and passes the result to `_notify` after releasing it.
        previous = self._state
        self._state = new_state
        self._failure_count = 0
        self._success_count = 0
        self._trials_in_flight = 0
        self._generation += 1
        self._opened_at = self._clock() if new_state is CircuitState.OPEN else None
        logger.info(
            "Circuit for '%s' changed from %s to %s.",
            self._dependency,
            previous,
            new_state,
        )
        return previous, new_state

    def _notify(self, transition: tuple[CircuitState, CircuitState] | None) -> None:
        if transition is None or self._on_state_change is None:
            return
        previous, new_state = transition
        self._on_state_change(self._dependency, previous, new_state)


class CircuitBreakerRegistry:
    """Process-wide breakers, one per dependency name."""

    def __init__(
        self,
        policy: CircuitBreakerPolicy | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: StateChangeCallback | None = None,
    ) -> None:
        self._policy = policy or CircuitBreakerPolicy()
        self._clock = clock
        self._on_state_change = on_state_change
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, dependency: str) -> CircuitBreaker:
        """Return the shared breaker for `dependency`, creating it on first use."""

        with self._lock:
            breaker = self._breakers.get(dependency)
            if breaker is None:
                breaker = CircuitBreaker(
                    dependency,
                    self._policy,
                    clock=self._clock,
                    on_state_change=self._on_state_change,
                )
                self._breakers[dependency] = breaker
            return breaker

    def snapshots(self) -> list[CircuitSnapshot]:
        """Return snapshots ordered by dependency name."""

        with self._lock:
            breakers = sorted(self._breakers.values(), key=lambda item: item.dependency)
        return [breaker.snapshot() for breaker in breakers]


__all__ = [
    "CircuitBreaker",
    "CircuitBreakerPolicy",
    "CircuitBreakerRegistry",
    "CircuitSnapshot",
    "CircuitState",
    "counts_as_failure",
]
