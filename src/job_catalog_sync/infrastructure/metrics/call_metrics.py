"""Per-dependency call counters for outbound HTTP traffic."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime

NETWORK_ERROR_STATUS = "network_error"


@dataclass(slots=True, frozen=True)
class CallMetricsSnapshot:
    """Point-in-time view of one dependency's call counters."""

    dependency: str
    calls: int
    errors: int
    average_latency_ms: float
    max_latency_ms: float
    status_counts: dict[str, int]
    last_error_status: str | None
    last_error_at: datetime | None

    @property
    def error_rate(self) -> float:
        """Share of calls that failed, 0.0 before the first call."""

        if self.calls == 0:
            return 0.0
        return self.errors / self.calls


@dataclass(slots=True)
class _DependencyCounters:
    calls: int = 0
    errors: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    status_counts: dict[str, int] = field(default_factory=dict)
    last_error_status: str | None = None
    last_error_at: datetime | None = None


class CallMetricsRegistry:
    """Counts calls, failures, and latency for every outbound dependency.

    A call fails when it gets no response (`status_code=None`) or a
    status of 400 or above. Retried attempts are counted individually.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, _DependencyCounters] = {}

    def record(
        self,
        dependency: str,
        method: str,
        status_code: int | None,
        duration_seconds: float,
    ) -> None:
        """Record one finished attempt."""

        latency_ms = max(duration_seconds, 0.0) * 1000.0
        status = NETWORK_ERROR_STATUS if status_code is None else str(status_code)
        failed = status_code is None or status_code >= 400
        with self._lock:
            counters = self._counters.setdefault(dependency, _DependencyCounters())
            counters.calls += 1
            counters.total_latency_ms += latency_ms
            counters.max_latency_ms = max(counters.max_latency_ms, latency_ms)
            counters.status_counts[status] = counters.status_counts.get(status, 0) + 1
            if failed:
                counters.errors += 1
                counters.last_error_status = f"{method} {status}"
                counters.last_error_at = datetime.now(tz=UTC)

    def snapshot(self, dependency: str) -> CallMetricsSnapshot:
        """Return counters for `dependency`; zeros when it was never called."""

        with self._lock:
            counters = self._counters.get(dependency, _DependencyCounters())
            return _snapshot(dependency, counters)

    def snapshots(self) -> list[CallMetricsSnapshot]:
        """Return snapshots ordered by dependency name."""

        with self._lock:
            return [
                _snapshot(dependency, self._counters[dependency])
                for dependency in sorted(self._counters)
            ]


def _snapshot(dependency: str, counters: _DependencyCounters) -> CallMetricsSnapshot:
    average = counters.total_latency_ms / counters.calls if counters.calls else 0.0
    return CallMetricsSnapshot(
        dependency=dependency,
        calls=counters.calls,
        errors=counters.errors,
        average_latency_ms=average,
        max_latency_ms=counters.max_latency_ms,
        status_counts=dict(counters.status_counts),
        last_error_status=counters.last_error_status,
        last_error_at=counters.last_error_at,
    )


__all__ = ["CallMetricsRegistry", "CallMetricsSnapshot", "NETWORK_ERROR_STATUS"]
