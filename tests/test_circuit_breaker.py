from __future__ import annotations

import asyncio

import pytest

from job_catalog_sync.domain.errors import (
    CircuitOpenError,
    PermanentUpstreamError,
    TransientUpstreamError,
    UpstreamAuthenticationError,
)
from job_catalog_sync.infrastructure.resilience import (
    CircuitBreaker,
    CircuitBreakerPolicy,
    CircuitBreakerRegistry,
    CircuitState,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingOperation:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return "ok"


def _breaker(clock: FakeClock, **overrides: float) -> CircuitBreaker:
    policy = CircuitBreakerPolicy(
        failure_threshold=int(overrides.get("failure_threshold", 5)),
        reset_timeout_seconds=overrides.get("reset_timeout_seconds", 30.0),
        success_threshold=int(overrides.get("success_threshold", 2)),
        half_open_max_calls=int(overrides.get("half_open_max_calls", 1)),
    )
    return CircuitBreaker("upstream", policy, clock=clock)


def _fail_times(breaker: CircuitBreaker, count: int) -> None:
    failing = CountingOperation(TransientUpstreamError("unavailable", 503))
    for _ in range(count):
        with pytest.raises(TransientUpstreamError):
            asyncio.run(breaker.call(failing))


def test_breaker_opens_after_threshold_and_fails_fast() -> None:
    clock = FakeClock()
    breaker = _breaker(clock)

    _fail_times(breaker, 4)
    assert breaker.state is CircuitState.CLOSED
    _fail_times(breaker, 1)
    assert breaker.state is CircuitState.OPEN

    operation = CountingOperation()
    clock.advance(29.0)
    with pytest.raises(CircuitOpenError) as exc_info:
        asyncio.run(breaker.call(operation))

    assert operation.calls == 0
    assert exc_info.value.dependency == "upstream"
    assert exc_info.value.retry_at is not None


def test_breaker_half_open_closes_after_two_successes() -> None:
    clock = FakeClock()
    breaker = _breaker(clock)
    _fail_times(breaker, 5)

    clock.advance(30.0)
    operation = CountingOperation()
    assert asyncio.run(breaker.call(operation)) == "ok"
    assert breaker.state is CircuitState.HALF_OPEN
    assert breaker.snapshot().success_count == 1

    assert asyncio.run(breaker.call(operation)) == "ok"
    assert breaker.state is CircuitState.CLOSED
    assert operation.calls == 2

    snapshot = breaker.snapshot()
    assert snapshot.failure_count == 0
    assert snapshot.success_count == 0


def test_breaker_half_open_permits_one_trial_at_a_time() -> None:
    clock = FakeClock()
    breaker = _breaker(clock)
    _fail_times(breaker, 5)
    clock.advance(30.0)

    async def scenario() -> None:
        release = asyncio.Event()

        async def slow_trial() -> str:
            await release.wait()
            return "trial"

        trial = asyncio.create_task(breaker.call(slow_trial))
        await asyncio.sleep(0)
        assert breaker.state is CircuitState.HALF_OPEN

        second = CountingOperation()
        with pytest.raises(CircuitOpenError):
            await breaker.call(second)
        assert second.calls == 0

        release.set()
        assert await trial == "trial"

    asyncio.run(scenario())


def test_breaker_half_open_failure_reopens_and_restarts_timer() -> None:
    clock = FakeClock()
    breaker = _breaker(clock)
    _fail_times(breaker, 5)

    clock.advance(30.0)
    _fail_times(breaker, 1)
    assert breaker.state is CircuitState.OPEN

    clock.advance(10.0)
    with pytest.raises(CircuitOpenError):
        asyncio.run(breaker.call(CountingOperation()))

    clock.advance(20.0)
    assert asyncio.run(breaker.call(CountingOperation())) == "ok"
    assert breaker.state is CircuitState.HALF_OPEN


def test_success_while_closed_resets_failure_count() -> None:
    clock = FakeClock()
    breaker = _breaker(clock)

    _fail_times(breaker, 4)
    asyncio.run(breaker.call(CountingOperation()))
    assert breaker.snapshot().failure_count == 0

    _fail_times(breaker, 4)
    assert breaker.state is CircuitState.CLOSED


def test_client_errors_do_not_count_toward_opening() -> None:
    clock = FakeClock()
    breaker = _breaker(clock, failure_threshold=2)

    for error in (
        PermanentUpstreamError("not found", 404),
        PermanentUpstreamError("bad request", 400),
        UpstreamAuthenticationError("bad credentials"),
    ):
        with pytest.raises(type(error)):
            asyncio.run(breaker.call(CountingOperation(error)))

    assert breaker.state is CircuitState.CLOSED
    assert breaker.snapshot().failure_count == 0


def test_state_change_callback_sees_every_transition() -> None:
    clock = FakeClock()
    transitions: list[tuple[str, CircuitState, CircuitState]] = []
    breaker = CircuitBreaker(
        "upstream",
        CircuitBreakerPolicy(failure_threshold=1, success_threshold=1),
        clock=clock,
        on_state_change=lambda name, old, new: transitions.append((name, old, new)),
    )

    _fail_times(breaker, 1)
    clock.advance(30.0)
    asyncio.run(breaker.call(CountingOperation()))

    assert transitions == [
        ("upstream", CircuitState.CLOSED, CircuitState.OPEN),
        ("upstream", CircuitState.OPEN, CircuitState.HALF_OPEN),
        ("upstream", CircuitState.HALF_OPEN, CircuitState.CLOSED),
    ]


def test_state_change_callback_can_read_the_breaker() -> None:
    clock = FakeClock()
    observed: list[tuple[CircuitState, CircuitState, int]] = []
    breaker: CircuitBreaker

    def on_change(name: str, old: CircuitState, new: CircuitState) -> None:
        snapshot = breaker.snapshot()
        observed.append((breaker.state, snapshot.state, snapshot.failure_count))

    breaker = CircuitBreaker(
        "upstream",
        CircuitBreakerPolicy(failure_threshold=2, success_threshold=1),
        clock=clock,
        on_state_change=on_change,
    )

    _fail_times(breaker, 2)
    clock.advance(30.0)
    asyncio.run(breaker.call(CountingOperation()))

    assert observed == [
        (CircuitState.OPEN, CircuitState.OPEN, 0),
        (CircuitState.HALF_OPEN, CircuitState.HALF_OPEN, 0),
        (CircuitState.CLOSED, CircuitState.CLOSED, 0),
    ]


def test_registry_shares_one_breaker_per_dependency() -> None:
    registry = CircuitBreakerRegistry(CircuitBreakerPolicy(failure_threshold=3))

    upstream = registry.get("upstream")
    assert registry.get("upstream") is upstream
    registry.get("geocoder")

    snapshots = registry.snapshots()
    assert [snapshot.dependency for snapshot in snapshots] == ["geocoder", "upstream"]
    assert all(snapshot.state is CircuitState.CLOSED for snapshot in snapshots)


def test_policy_rejects_invalid_thresholds() -> None:
    with pytest.raises(ValueError):
        CircuitBreakerPolicy(failure_threshold=0)
    with pytest.raises(ValueError):
        CircuitBreakerPolicy(half_open_max_calls=0)
