"""HTTP API layer."""

from job_catalog_sync.api.router import api_router

__all__ = ["api_router"]
