"""Route modules public API."""

from job_catalog_sync.api.routes.health import router as health_router
from job_catalog_sync.api.routes.sync import router as sync_router
from job_catalog_sync.api.routes.webhooks import router as webhooks_router

__all__ = ["health_router", "sync_router", "webhooks_router"]
