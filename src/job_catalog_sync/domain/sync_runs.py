"""Sync run bookkeeping models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class SyncKind(StrEnum):
    """Scheduled sync flavours."""

    FULL = "full"
    INCREMENTAL = "incremental"


class SyncRunStatus(StrEnum):
    """Terminal outcome of one sync run."""

    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


@dataclass(slots=True, frozen=True)
class SyncState:
    """Durable sync progress markers."""

    last_full_sync_at: datetime | None = None
    incremental_watermark: datetime | None = None


@dataclass(slots=True, frozen=True)
class SyncRunReport:
    """Outcome of one full or incremental run."""

    kind: SyncKind
    status: SyncRunStatus
    started_at: datetime
    finished_at: datetime
    fetched: int = 0
    upserted: int = 0
    transform_failures: int = 0
    store_failures: int = 0
    pages: int = 0
    watermark: datetime | None = None
    error: str | None = None

    @property
    def failed_records(self) -> int:
        """Records that were fetched but not persisted."""

        return self.transform_failures + self.store_failures

    @property
    def duration_seconds(self) -> float:
        """Wall-clock duration of the run."""

        return max((self.finished_at - self.started_at).total_seconds(), 0.0)


__all__ = ["SyncKind", "SyncRunReport", "SyncRunStatus", "SyncState"]
