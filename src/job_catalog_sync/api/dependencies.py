"""Dependency providers for FastAPI routes."""

from functools import lru_cache

from fastapi import Depends

from job_catalog_sync.application.services import (
    SyncStatusService,
    WebhookProcessor,
)
from job_catalog_sync.bootstrap import SyncRuntime, build_sync_runtime
from job_catalog_sync.config import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return singleton settings."""

    return Settings()


@lru_cache(maxsize=1)
def get_sync_runtime() -> SyncRuntime:
    """Return singleton service graph."""

    return build_sync_runtime(get_settings())


def get_webhook_processor(
    runtime: SyncRuntime = Depends(get_sync_runtime),
) -> WebhookProcessor:
    """Return the webhook processor from the runtime."""

    return runtime.webhook_processor


def get_status_service(
    runtime: SyncRuntime = Depends(get_sync_runtime),
) -> SyncStatusService:
    """Return the status service from the runtime."""

    return runtime.status_service


__all__ = [
    "get_settings",
    "get_status_service",
    "get_sync_runtime",
    "get_webhook_processor",
]
