"""Domain exceptions for the synchronization engine."""

from __future__ import annotations

from datetime import datetime


class JobSyncError(Exception):
    """Base class for synchronization errors."""


class UpstreamAuthenticationError(JobSyncError):
    """Raised when an upstream access token cannot be acquired or is rejected."""


class UpstreamError(JobSyncError):
    """Base class for failed upstream API calls."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientUpstreamError(UpstreamError):
    """Raised for network failures, timeouts, and 429/5xx responses worth retrying."""


class PermanentUpstreamError(UpstreamError):
    """Raised for 4xx responses (other than 429) and unusable response bodies."""


class CircuitOpenError(JobSyncError):
    """Raised when a dependency's circuit rejects the call without attempting it."""

    def __init__(self, dependency: str, retry_at: datetime | None = None) -> None:
        message = f"Circuit for '{dependency}' is open."
        if retry_at is not None:
            message = f"{message} Next trial call allowed at {retry_at.isoformat()}."
        super().__init__(message)
        self.dependency = dependency
        self.retry_at = retry_at


class RecordTransformError(JobSyncError):
    """Raised when one upstream record cannot be mapped to a catalog record."""

    def __init__(self, message: str, upstream_id: str | None = None) -> None:
        super().__init__(message)
        self.upstream_id = upstream_id


class InvalidSignatureError(JobSyncError):
    """Raised when a webhook event fails authenticity verification."""


class WebhookPayloadError(JobSyncError):
    """Raised when an authentic webhook body is not a valid event envelope."""


class CatalogStoreError(JobSyncError):
    """Raised when persisting one catalog record fails."""


class CatalogStoreUnavailableError(CatalogStoreError):
    """Raised when the catalog store itself cannot be reached."""


class SyncNotConfiguredError(JobSyncError):
    """Raised when a sync run is requested but no upstream is configured."""


__all__ = [
    "CatalogStoreError",
    "CatalogStoreUnavailableError",
    "CircuitOpenError",
    "InvalidSignatureError",
    "JobSyncError",
    "PermanentUpstreamError",
    "RecordTransformError",
    "SyncNotConfiguredError",
    "TransientUpstreamError",
    "UpstreamAuthenticationError",
    "UpstreamError",
    "WebhookPayloadError",
]
