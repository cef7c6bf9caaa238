"""Catalog store implementations."""

from job_catalog_sync.infrastructure.repositories.in_memory_catalog_store import (
    InMemoryCatalogStore,
)
from job_catalog_sync.infrastructure.repositories.postgres_catalog_store import (
    PostgresCatalogStore,
)

__all__ = ["InMemoryCatalogStore", "PostgresCatalogStore"]
