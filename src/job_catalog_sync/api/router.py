"""Top-level API router composition."""

from fastapi import APIRouter

from job_catalog_sync.api.routes import health_router, sync_router, webhooks_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(webhooks_router)
api_router.include_router(sync_router)

__all__ = ["api_router"]
