"""Ports for catalog persistence, sync state, upstream access, and telemetry."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from job_catalog_sync.domain.job_records import CatalogJobRecord
from job_catalog_sync.domain.sync_runs import SyncRunReport, SyncState
from job_catalog_sync.domain.upstream_models import UpstreamJobPage


class CatalogStore(Protocol):
    """Persistence port for catalog job records keyed by upstream identifier."""

    async def upsert(self, record: CatalogJobRecord) -> CatalogJobRecord:
        """Insert or update in place; atomic per upstream identifier."""

    async def mark_expired(self, upstream_id: str) -> bool:
        """Move a record to `expired`; return False when the identifier is unknown."""

    async def get(self, upstream_id: str) -> CatalogJobRecord | None:
        """Return one record by upstream identifier."""

    async def count(self) -> int:
        """Return the number of stored records."""


@runtime_checkable
class SyncStateRepository(Protocol):
    """Durable storage for sync progress markers."""

    async def get_sync_state(self) -> SyncState:
        """Return the current markers."""

    async def record_full_sync(self, completed_at: datetime) -> None:
        """Store the completion time of a successful full sync."""

    async def advance_incremental_watermark(self, watermark: datetime) -> None:
        """Store the watermark of a fully successful incremental sync."""


class UpstreamJobSource(Protocol):
    """Pull port for the upstream system of record."""

    async def list_jobs(self, page: int, page_size: int) -> UpstreamJobPage:
        """Return one page of jobs."""

    async def list_jobs_updated_since(
        self,
        since: datetime,
        page_size: int = 100,
    ) -> list[dict[str, Any]]:
        """Return every job modified after `since`, fetched `page_size` at a time."""

    async def health_check(self) -> None:
        """Raise when the upstream is not healthy."""


class SyncEventPublisher(Protocol):
    """Outbound telemetry for finished sync runs."""

    async def publish_run_report(self, report: SyncRunReport) -> None:
        """Publish one run report."""


__all__ = [
    "CatalogStore",
    "SyncEventPublisher",
    "SyncStateRepository",
    "UpstreamJobSource",
]
