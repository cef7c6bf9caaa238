"""No-op sync event publisher."""

from __future__ import annotations

from job_catalog_sync.domain.ports import SyncEventPublisher
from job_catalog_sync.domain.sync_runs import SyncRunReport


class NoopSyncEventPublisher(SyncEventPublisher):
    """No-op implementation for environments without event streaming."""

    async def publish_run_report(self, report: SyncRunReport) -> None:
        _ = report


__all__ = ["NoopSyncEventPublisher"]
