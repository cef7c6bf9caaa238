"""Health and status views for operational dashboards."""

from __future__ import annotations

import logging

from job_catalog_sync.application.services.sync_orchestrator import SyncOrchestrator
from job_catalog_sync.domain.errors import JobSyncError, SyncNotConfiguredError
from job_catalog_sync.domain.ports import SyncStateRepository, UpstreamJobSource
from job_catalog_sync.domain.status_models import (
    CallMetricsResponse,
    CircuitStatusResponse,
    SyncRunResponse,
    SyncStatusResponse,
    UpstreamHealthResponse,
)
from job_catalog_sync.domain.sync_runs import SyncKind
from job_catalog_sync.infrastructure.metrics import CallMetricsRegistry, CallMetricsSnapshot
from job_catalog_sync.infrastructure.resilience import CircuitBreakerRegistry, CircuitSnapshot

logger = logging.getLogger(__name__)


class SyncStatusService:
    """Assemble circuit, watermark, and last-run state."""

    def __init__(
        self,
        breaker_registry: CircuitBreakerRegistry,
        state_repository: SyncStateRepository,
        orchestrator: SyncOrchestrator | None = None,
        source: UpstreamJobSource | None = None,
        *,
        dependency: str = "upstream",
        call_metrics: CallMetricsRegistry | None = None,
    ) -> None:
        self._breaker_registry = breaker_registry
        self._state_repository = state_repository
        self._orchestrator = orchestrator
        self._source = source
        self._dependency = dependency
        self._call_metrics = call_metrics

    async def get_status(self) -> SyncStatusResponse:
        """Return the status surface."""

        state = await self._state_repository.get_sync_state()
        orchestrator = self._orchestrator
        last_full = None if orchestrator is None else orchestrator.last_report(SyncKind.FULL)
        last_incremental = (
            None if orchestrator is None else orchestrator.last_report(SyncKind.INCREMENTAL)
        )
        latest = None if orchestrator is None else orchestrator.latest_report()

        return SyncStatusResponse(
            sync_configured=orchestrator is not None,
            circuits=[_circuit_response(item) for item in self._breaker_registry.snapshots()],
            upstream_calls=(
                []
                if self._call_metrics is None
                else [_call_metrics_response(item) for item in self._call_metrics.snapshots()]
            ),
            last_full_sync_at=state.last_full_sync_at,
            incremental_watermark=state.incremental_watermark,
            last_run_failed_records=0 if latest is None else latest.failed_records,
            last_full_run=None if last_full is None else SyncRunResponse.from_report(last_full),
            last_incremental_run=(
                None
                if last_incremental is None
                else SyncRunResponse.from_report(last_incremental)
            ),
        )

    async def probe_upstream(self) -> UpstreamHealthResponse:
        """Call the upstream health endpoint through the usual resilience stack."""

        if self._source is None:
            raise SyncNotConfiguredError("No upstream is configured.")

        detail = None
        healthy = True
        try:
            await self._source.health_check()
        except JobSyncError as exc:
            logger.warning("Upstream health probe failed: %s", exc)
            healthy = False
            detail = str(exc)

        breaker = self._breaker_registry.get(self._dependency)
        return UpstreamHealthResponse(
            dependency=self._dependency,
            healthy=healthy,
            detail=detail,
            circuit=_circuit_response(breaker.snapshot()),
        )


def _circuit_response(snapshot: CircuitSnapshot) -> CircuitStatusResponse:
    return CircuitStatusResponse(
        dependency=snapshot.dependency,
        state=snapshot.state.value,
        failure_count=snapshot.failure_count,
        success_count=snapshot.success_count,
        retry_at=snapshot.retry_at,
    )


def _call_metrics_response(snapshot: CallMetricsSnapshot) -> CallMetricsResponse:
    return CallMetricsResponse(
        dependency=snapshot.dependency,
        calls=snapshot.calls,
        errors=snapshot.errors,
        error_rate=snapshot.error_rate,
        average_latency_ms=snapshot.average_latency_ms,
        max_latency_ms=snapshot.max_latency_ms,
        status_counts=snapshot.status_counts,
        last_error_status=snapshot.last_error_status,
        last_error_at=snapshot.last_error_at,
    )


__all__ = ["SyncStatusService"]
