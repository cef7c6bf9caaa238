"""Sync event publisher implementations."""

from job_catalog_sync.infrastructure.events.mqtt_sync_event_publisher import (
    MqttSyncEventPublisher,
)
from job_catalog_sync.infrastructure.events.noop_sync_event_publisher import (
    NoopSyncEventPublisher,
)

__all__ = ["MqttSyncEventPublisher", "NoopSyncEventPublisher"]
