"""Periodic sync scheduling."""

from job_catalog_sync.infrastructure.scheduling.periodic_sync_scheduler import (
    PeriodicSyncScheduler,
    ScheduledSync,
)

__all__ = ["PeriodicSyncScheduler", "ScheduledSync"]
