"""Application services public API."""

from job_catalog_sync.application.services.status_service import SyncStatusService
from job_catalog_sync.application.services.sync_orchestrator import SyncOrchestrator
from job_catalog_sync.application.services.webhook_processor import (
    SIGNATURE_HEADER,
    WebhookProcessor,
    compute_signature,
    verify_signature,
)

__all__ = [
    "SIGNATURE_HEADER",
    "SyncOrchestrator",
    "SyncStatusService",
    "WebhookProcessor",
    "compute_signature",
    "verify_signature",
]
