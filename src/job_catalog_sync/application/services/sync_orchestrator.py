"""Scheduled full and incremental synchronization of the job catalog."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from job_catalog_sync.application.transform import transform_job
from job_catalog_sync.domain.errors import (
    CatalogStoreUnavailableError,
    JobSyncError,
    RecordTransformError,
)
from job_catalog_sync.domain.ports import (
    CatalogStore,
    SyncEventPublisher,
    SyncStateRepository,
    UpstreamJobSource,
)
from job_catalog_sync.domain.sync_runs import SyncKind, SyncRunReport, SyncRunStatus

logger = logging.getLogger(__name__)

_RunBody = Callable[[datetime, "_RunProgress"], Awaitable[datetime | None]]


class _StopRequested(Exception):
    """Raised inside a run once a cooperative stop has been requested."""


@dataclass(slots=True)
class _RunProgress:
    fetched: int = 0
    upserted: int = 0
    transform_failures: int = 0
    store_failures: int = 0
    pages: int = 0

    @property
    def failed_records(self) -> int:
        return self.transform_failures + self.store_failures


class SyncOrchestrator:
    """Drive full and incremental syncs from the upstream into the catalog store.

    Each sync kind has its own run lock: a trigger that arrives while a run of
    the same kind is in flight returns a `skipped` report. Per-record failures
    are counted and never abort a run; upstream paging failures, an unreachable
    store, the run timeout and cancellation do, and leave the incremental
    watermark where it was.
    """

    def __init__(
        self,
        source: UpstreamJobSource,
        store: CatalogStore,
        state_repository: SyncStateRepository,
        *,
        event_publisher: SyncEventPublisher | None = None,
        page_size: int = 100,
        max_pages: int = 10_000,
        run_timeout_seconds: float = 3600.0,
        initial_lookback_seconds: float = 86_400.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._store = store
        self._state_repository = state_repository
        self._event_publisher = event_publisher
        self._page_size = max(page_size, 1)
        self._max_pages = max(max_pages, 1)
        self._run_timeout_seconds = run_timeout_seconds
        self._initial_lookback = timedelta(seconds=max(initial_lookback_seconds, 0.0))
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._run_locks = {kind: asyncio.Lock() for kind in SyncKind}
        self._stop_requested = asyncio.Event()
        self._last_reports: dict[SyncKind, SyncRunReport] = {}

    async def run_full_sync(self) -> SyncRunReport:
        """Page through every upstream job and upsert each one."""

        return await self._run(SyncKind.FULL, self._full_sync)

    async def run_incremental_sync(self) -> SyncRunReport:
        """Upsert jobs changed since the watermark; advance it only on a clean run."""

        return await self._run(SyncKind.INCREMENTAL, self._incremental_sync)

    def request_stop(self) -> None:
        """Ask in-flight and future runs to stop before their next upstream call."""

        self._stop_requested.set()

    def is_running(self, kind: SyncKind) -> bool:
        """Return whether a run of `kind` is in flight."""

        return self._run_locks[kind].locked()

    def last_report(self, kind: SyncKind) -> SyncRunReport | None:
        """Return the most recent non-skipped report of `kind`."""

        return self._last_reports.get(kind)

    def latest_report(self) -> SyncRunReport | None:
        """Return the most recently finished non-skipped report of any kind."""

        reports = list(self._last_reports.values())
        if not reports:
            return None
        return max(reports, key=lambda report: report.finished_at)

    async def _run(self, kind: SyncKind, body: _RunBody) -> SyncRunReport:
        lock = self._run_locks[kind]
        if lock.locked():
            logger.info("A %s sync is already running; skipping this trigger.", kind)
            now = self._clock()
            return SyncRunReport(
                kind=kind,
                status=SyncRunStatus.SKIPPED,
                started_at=now,
                finished_at=now,
            )

        async with lock:
            started_at = self._clock()
            progress = _RunProgress()
            logger.info("Starting %s sync.", kind)
            try:
                async with asyncio.timeout(self._run_timeout_seconds):
                    watermark = await body(started_at, progress)
            except asyncio.CancelledError:
                report = self._report(
                    kind, SyncRunStatus.CANCELLED, started_at, progress, error="Run was cancelled."
                )
                self._remember(report)
                logger.warning("%s sync cancelled after %s records.", kind, progress.fetched)
                raise
            except _StopRequested:
                report = self._report(
                    kind, SyncRunStatus.CANCELLED, started_at, progress, error="Stop requested."
                )
            except TimeoutError:
                report = self._report(
                    kind,
                    SyncRunStatus.FAILED,
                    started_at,
                    progress,
                    error=f"Run exceeded {self._run_timeout_seconds}s.",
                )
            except JobSyncError as exc:
                report = self._report(kind, SyncRunStatus.FAILED, started_at, progress, error=str(exc))
            except Exception as exc:
                logger.exception("%s sync failed unexpectedly.", kind)
                report = self._report(
                    kind,
                    SyncRunStatus.FAILED,
                    started_at,
                    progress,
                    error=f"Unexpected error: {exc}",
                )
            else:
                status = (
                    SyncRunStatus.SUCCEEDED if progress.failed_records == 0 else SyncRunStatus.PARTIAL
                )
                report = self._report(kind, status, started_at, progress, watermark=watermark)

            self._remember(report)
            self._log_report(report)

        await self._publish(report)
        return report

    async def _full_sync(self, started_at: datetime, progress: _RunProgress) -> None:
        for page in range(1, self._max_pages + 1):
            self._ensure_not_stopped()
            result = await self._source.list_jobs(page, self._page_size)
            progress.pages += 1
            await self._apply_batch(result.jobs, started_at, progress)
            if len(result.jobs) < self._page_size or not result.has_more:
                break
        else:
            logger.warning("Full sync stopped at the %s page cap.", self._max_pages)

        if progress.failed_records == 0:
            await self._state_repository.record_full_sync(started_at)
        return None

    async def _incremental_sync(
        self,
        started_at: datetime,
        progress: _RunProgress,
    ) -> datetime | None:
        state = await self._state_repository.get_sync_state()
        since = (
            state.incremental_watermark
            or state.last_full_sync_at
            or started_at - self._initial_lookback
        )

        self._ensure_not_stopped()
        jobs = await self._source.list_jobs_updated_since(since, self._page_size)
        progress.pages += 1
        await self._apply_batch(jobs, started_at, progress)

        if progress.failed_records > 0:
            logger.warning(
                "Incremental sync had %s failed records; keeping watermark at %s.",
                progress.failed_records,
                since.isoformat(),
            )
            return since

        await self._state_repository.advance_incremental_watermark(started_at)
        return started_at

    async def _apply_batch(
        self,
        jobs: Iterable[Mapping[str, Any]],
        synced_at: datetime,
        progress: _RunProgress,
    ) -> None:
        for raw in jobs:
            self._ensure_not_stopped()
            progress.fetched += 1
            try:
                record = transform_job(raw, synced_at=synced_at)
            except RecordTransformError as exc:
                progress.transform_failures += 1
                logger.warning("Skipping upstream job %s: %s", exc.upstream_id, exc)
                continue
            except Exception:
                progress.transform_failures += 1
                logger.exception("Unexpected error transforming an upstream job; skipping it.")
                continue

            try:
                await self._store.upsert(record)
            except CatalogStoreUnavailableError:
                raise
            except Exception as exc:
                progress.store_failures += 1
                logger.warning("Failed to store job '%s': %s", record.upstream_id, exc)
                continue
            progress.upserted += 1

    def _ensure_not_stopped(self) -> None:
        if self._stop_requested.is_set():
            raise _StopRequested()

    def _report(
        self,
        kind: SyncKind,
        status: SyncRunStatus,
        started_at: datetime,
        progress: _RunProgress,
        *,
        watermark: datetime | None = None,
        error: str | None = None,
    ) -> SyncRunReport:
        return SyncRunReport(
            kind=kind,
            status=status,
            started_at=started_at,
            finished_at=self._clock(),
            fetched=progress.fetched,
            upserted=progress.upserted,
            transform_failures=progress.transform_failures,
            store_failures=progress.store_failures,
            pages=progress.pages,
            watermark=watermark,
            error=error,
        )

    def _remember(self, report: SyncRunReport) -> None:
        self._last_reports[report.kind] = report

    def _log_report(self, report: SyncRunReport) -> None:
        if report.status in {SyncRunStatus.SUCCEEDED, SyncRunStatus.PARTIAL}:
            logger.info(
                "%s sync %s: fetched=%s upserted=%s failed=%s in %.1fs.",
                report.kind,
                report.status,
                report.fetched,
                report.upserted,
                report.failed_records,
                report.duration_seconds,
            )
            return
        logger.warning(
            "%s sync %s after fetching %s records: %s",
            report.kind,
            report.status,
            report.fetched,
            report.error,
        )

    async def _publish(self, report: SyncRunReport) -> None:
        if self._event_publisher is None:
            return
        try:
            await self._event_publisher.publish_run_report(report)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to publish %s sync report: %s", report.kind, exc)


__all__ = ["SyncOrchestrator"]
