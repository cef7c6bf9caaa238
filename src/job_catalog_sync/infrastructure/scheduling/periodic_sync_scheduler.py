"""Background loops that trigger sync runs on fixed cadences."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ScheduledSync:
    """One periodic job: `run` is awaited every `interval_seconds`."""

    name: str
    interval_seconds: float
    run: Callable[[], Awaitable[Any]]
    run_on_startup: bool = False


class PeriodicSyncScheduler:
    """Run each scheduled sync in its own loop until stopped.

    A run that raises is logged and the loop carries on with the next tick.
    `stop()` cancels the loops, including any run in flight.
    """

    def __init__(self, jobs: list[ScheduledSync]) -> None:
        names = [job.name for job in jobs]
        if len(set(names)) != len(names):
            raise ValueError("Scheduled sync names must be unique.")
        self._jobs = list(jobs)
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._wake_events = {job.name: asyncio.Event() for job in jobs}
        self._stopping = asyncio.Event()
        self._lifecycle_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        """Whether any loop is alive."""

        return any(not task.done() for task in self._tasks.values())

    async def start(self) -> None:
        """Start one background loop per job if not already running."""

        async with self._lifecycle_lock:
            if self.running:
                return

            self._stopping.clear()
            for job in self._jobs:
                self._tasks[job.name] = asyncio.create_task(
                    self._run_loop(job),
                    name=f"periodic-sync-{job.name}",
                )
            logger.info("Started sync scheduler with jobs: %s", ", ".join(self._wake_events))

    async def stop(self) -> None:
        """Stop all loops and wait for them to exit."""

        async with self._lifecycle_lock:
            tasks = list(self._tasks.values())
            if not tasks:
                return
            self._tasks = {}

            self._stopping.set()
            for event in self._wake_events.values():
                event.set()
            for task in tasks:
                task.cancel()

        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        logger.info("Stopped sync scheduler.")

    def trigger(self, name: str) -> None:
        """Wake the loop for `name` so it runs now instead of at the next tick."""

        try:
            self._wake_events[name].set()
        except KeyError:
            raise ValueError(f"Unknown scheduled sync '{name}'.") from None

    async def _run_loop(self, job: ScheduledSync) -> None:
        wake_event = self._wake_events[job.name]
        run_now = job.run_on_startup
        interval = max(job.interval_seconds, 0.01)
        while not self._stopping.is_set():
            if run_now:
                try:
                    await job.run()
                except Exception:
                    logger.exception("Scheduled %s sync failed.", job.name)

            wake_event.clear()
            try:
                await asyncio.wait_for(wake_event.wait(), timeout=interval)
            except TimeoutError:
                pass
            run_now = True


__all__ = ["PeriodicSyncScheduler", "ScheduledSync"]
