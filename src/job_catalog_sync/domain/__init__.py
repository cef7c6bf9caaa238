"""Domain public API."""

from job_catalog_sync.domain.errors import (
    CatalogStoreError,
    CatalogStoreUnavailableError,
    CircuitOpenError,
    InvalidSignatureError,
    JobSyncError,
    PermanentUpstreamError,
    RecordTransformError,
    SyncNotConfiguredError,
    TransientUpstreamError,
    UpstreamAuthenticationError,
    UpstreamError,
    WebhookPayloadError,
)
from job_catalog_sync.domain.job_records import (
    CatalogJobRecord,
    Coordinates,
    JobCompensation,
    JobDuration,
    JobLocation,
    JobRequirements,
    JobShift,
    JobStatus,
    ShiftType,
)
from job_catalog_sync.domain.ports import (
    CatalogStore,
    SyncEventPublisher,
    SyncStateRepository,
    UpstreamJobSource,
)
from job_catalog_sync.domain.status_models import (
    CircuitStatusResponse,
    SyncRunResponse,
    SyncStatusResponse,
    UpstreamHealthResponse,
    WebhookAckResponse,
)
from job_catalog_sync.domain.sync_runs import SyncKind, SyncRunReport, SyncRunStatus, SyncState
from job_catalog_sync.domain.upstream_models import (
    UpstreamJobPage,
    UpstreamJobPayload,
    WebhookEvent,
    WebhookEventType,
)

__all__ = [
    "CatalogJobRecord",
    "CatalogStore",
    "CatalogStoreError",
    "CatalogStoreUnavailableError",
    "CircuitOpenError",
    "CircuitStatusResponse",
    "Coordinates",
    "InvalidSignatureError",
    "JobCompensation",
    "JobDuration",
    "JobLocation",
    "JobRequirements",
    "JobShift",
    "JobStatus",
    "JobSyncError",
    "PermanentUpstreamError",
    "RecordTransformError",
    "ShiftType",
    "SyncEventPublisher",
    "SyncKind",
    "SyncNotConfiguredError",
    "SyncRunReport",
    "SyncRunResponse",
    "SyncRunStatus",
    "SyncState",
    "SyncStateRepository",
    "SyncStatusResponse",
    "TransientUpstreamError",
    "UpstreamAuthenticationError",
    "UpstreamError",
    "UpstreamHealthResponse",
    "UpstreamJobPage",
    "UpstreamJobPayload",
    "UpstreamJobSource",
    "WebhookAckResponse",
    "WebhookEvent",
    "WebhookEventType",
    "WebhookPayloadError",
]
