"""Application layer public API."""

from job_catalog_sync.application.services import (
    SyncOrchestrator,
    SyncStatusService,
    WebhookProcessor,
)
from job_catalog_sync.application.transform import transform_job

__all__ = ["SyncOrchestrator", "SyncStatusService", "WebhookProcessor", "transform_job"]
