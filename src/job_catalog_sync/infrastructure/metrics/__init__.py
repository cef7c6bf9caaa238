"""Outbound call metrics."""

from job_catalog_sync.infrastructure.metrics.call_metrics import (
    NETWORK_ERROR_STATUS,
    CallMetricsRegistry,
    CallMetricsSnapshot,
)

__all__ = ["CallMetricsRegistry", "CallMetricsSnapshot", "NETWORK_ERROR_STATUS"]
