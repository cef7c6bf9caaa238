"""In-memory catalog store and sync state for local development and tests."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

from job_catalog_sync.domain.job_records import CatalogJobRecord, JobStatus
from job_catalog_sync.domain.ports import CatalogStore, SyncStateRepository
from job_catalog_sync.domain.sync_runs import SyncState

logger = logging.getLogger(__name__)

_MIN_TIMESTAMP_STEP = timedelta(microseconds=1)


class InMemoryCatalogStore(CatalogStore, SyncStateRepository):
    """Reference catalog store.

    Writes for one upstream identifier are serialized; different identifiers
    proceed independently.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._records: dict[str, CatalogJobRecord] = {}
        self._record_locks: dict[str, asyncio.Lock] = {}
        self._sync_state = SyncState()
        self._state_lock = asyncio.Lock()

    async def upsert(self, record: CatalogJobRecord) -> CatalogJobRecord:
        """Insert or update in place, keeping `created_at` and `is_featured`."""

        async with self._lock_for(record.upstream_id):
            existing = self._records.get(record.upstream_id)
            now = self._clock()
            if existing is None:
                stored = _detached(record, created_at=now, updated_at=now)
            elif self._is_stale(record, existing):
                logger.info(
                    "Ignoring stale write for job '%s' (source updated %s, stored %s).",
                    record.upstream_id,
                    record.source_updated_at,
                    existing.source_updated_at,
                )
                return _detached(existing)
            else:
                stored = _detached(
                    record,
                    is_featured=existing.is_featured,
                    created_at=existing.created_at,
                    updated_at=self._next_updated_at(existing, now),
                )
            self._records[record.upstream_id] = stored
            return _detached(stored)

    async def mark_expired(self, upstream_id: str) -> bool:
        """Set `status=expired`; every other field is left untouched."""

        async with self._lock_for(upstream_id):
            existing = self._records.get(upstream_id)
            if existing is None:
                return False
            self._records[upstream_id] = replace(existing, status=JobStatus.EXPIRED)
            return True

    async def get(self, upstream_id: str) -> CatalogJobRecord | None:
        """Return one record by upstream identifier."""

        record = self._records.get(upstream_id)
        return None if record is None else _detached(record)

    async def count(self) -> int:
        """Return the number of stored records."""

        return len(self._records)

    async def list_records(self) -> list[CatalogJobRecord]:
        """Return all records in insertion order."""

        return [_detached(record) for record in self._records.values()]

    async def get_sync_state(self) -> SyncState:
        """Return the current markers."""

        return self._sync_state

    async def record_full_sync(self, completed_at: datetime) -> None:
        """Store the completion time of a successful full sync."""

        async with self._state_lock:
            self._sync_state = replace(self._sync_state, last_full_sync_at=completed_at)

    async def advance_incremental_watermark(self, watermark: datetime) -> None:
        """Move the watermark forward; older values are ignored."""

        async with self._state_lock:
            current = self._sync_state.incremental_watermark
            if current is not None and watermark <= current:
                return
            self._sync_state = replace(self._sync_state, incremental_watermark=watermark)

    def _lock_for(self, upstream_id: str) -> asyncio.Lock:
        lock = self._record_locks.get(upstream_id)
        if lock is None:
            lock = asyncio.Lock()
            self._record_locks[upstream_id] = lock
        return lock

    def _is_stale(self, incoming: CatalogJobRecord, existing: CatalogJobRecord) -> bool:
        if incoming.source_updated_at is None or existing.source_updated_at is None:
            return False
        return incoming.source_updated_at < existing.source_updated_at

    def _next_updated_at(self, existing: CatalogJobRecord, now: datetime) -> datetime:
        if existing.updated_at is None or now > existing.updated_at:
            return now
        return existing.updated_at + _MIN_TIMESTAMP_STEP


def _detached(record: CatalogJobRecord, **changes: Any) -> CatalogJobRecord:
    """Copy `record` so the caller and the store never share the metadata bag."""

    return replace(record, metadata=copy.deepcopy(record.metadata), **changes)


__all__ = ["InMemoryCatalogStore"]
