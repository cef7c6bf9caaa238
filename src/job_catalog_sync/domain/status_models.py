"""Health and status response models for operational dashboards."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from job_catalog_sync.domain.sync_runs import SyncKind, SyncRunReport, SyncRunStatus


class StatusModel(BaseModel):
    """Base model for status routes."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class CircuitStatusResponse(StatusModel):
    """Circuit breaker state for one upstream dependency."""

    dependency: str
    state: str
    failure_count: int = Field(alias="failureCount")
    success_count: int = Field(alias="successCount")
    retry_at: datetime | None = Field(default=None, alias="retryAt")


class CallMetricsResponse(StatusModel):
    """Outbound call counters for one dependency."""

    dependency: str
    calls: int
    errors: int
    error_rate: float = Field(alias="errorRate")
    average_latency_ms: float = Field(alias="averageLatencyMs")
    max_latency_ms: float = Field(alias="maxLatencyMs")
    status_counts: dict[str, int] = Field(default_factory=dict, alias="statusCounts")
    last_error_status: str | None = Field(default=None, alias="lastErrorStatus")
    last_error_at: datetime | None = Field(default=None, alias="lastErrorAt")


class SyncRunResponse(StatusModel):
    """Summary of one sync run."""

    kind: SyncKind
    status: SyncRunStatus
    started_at: datetime = Field(alias="startedAt")
    finished_at: datetime = Field(alias="finishedAt")
    duration_seconds: float = Field(alias="durationSeconds")
    fetched: int
    upserted: int
    failed_records: int = Field(alias="failedRecords")
    transform_failures: int = Field(alias="transformFailures")
    store_failures: int = Field(alias="storeFailures")
    pages: int
    watermark: datetime | None = None
    error: str | None = None

    @classmethod
    def from_report(cls, report: SyncRunReport) -> "SyncRunResponse":
        """Build the response from a run report."""

        return cls(
            kind=report.kind,
            status=report.status,
            started_at=report.started_at,
            finished_at=report.finished_at,
            duration_seconds=report.duration_seconds,
            fetched=report.fetched,
            upserted=report.upserted,
            failed_records=report.failed_records,
            transform_failures=report.transform_failures,
            store_failures=report.store_failures,
            pages=report.pages,
            watermark=report.watermark,
            error=report.error,
        )


class SyncStatusResponse(StatusModel):
    """Status surface of the synchronization engine."""

    sync_configured: bool = Field(alias="syncConfigured")
    circuits: list[CircuitStatusResponse] = Field(default_factory=list)
    upstream_calls: list[CallMetricsResponse] = Field(default_factory=list, alias="upstreamCalls")
    last_full_sync_at: datetime | None = Field(default=None, alias="lastFullSyncAt")
    incremental_watermark: datetime | None = Field(default=None, alias="incrementalWatermark")
    last_run_failed_records: int = Field(default=0, alias="lastRunFailedRecords")
    last_full_run: SyncRunResponse | None = Field(default=None, alias="lastFullRun")
    last_incremental_run: SyncRunResponse | None = Field(
        default=None, alias="lastIncrementalRun"
    )


class UpstreamHealthResponse(StatusModel):
    """Result of probing the upstream health endpoint."""

    dependency: str
    healthy: bool
    detail: str | None = None
    circuit: CircuitStatusResponse | None = None


class WebhookAckResponse(StatusModel):
    """Acknowledgement returned after a webhook event was applied."""

    status: str = "processed"
    event_type: str = Field(alias="eventType")
    upstream_id: str = Field(alias="upstreamId")
    applied: bool


__all__ = [
    "CallMetricsResponse",
    "CircuitStatusResponse",
    "StatusModel",
    "SyncRunResponse",
    "SyncStatusResponse",
    "UpstreamHealthResponse",
    "WebhookAckResponse",
]
