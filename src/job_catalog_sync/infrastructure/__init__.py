"""Infrastructure layer public API."""

from job_catalog_sync.infrastructure.events import (
    MqttSyncEventPublisher,
    NoopSyncEventPublisher,
)
from job_catalog_sync.infrastructure.metrics import CallMetricsRegistry
from job_catalog_sync.infrastructure.repositories import (
    InMemoryCatalogStore,
    PostgresCatalogStore,
)
from job_catalog_sync.infrastructure.resilience import (
    CircuitBreaker,
    CircuitBreakerPolicy,
    CircuitBreakerRegistry,
    RetryPolicy,
)
from job_catalog_sync.infrastructure.scheduling import PeriodicSyncScheduler, ScheduledSync
from job_catalog_sync.infrastructure.upstream import (
    TokenManager,
    UpstreamCredentials,
    UpstreamJobsClient,
)

__all__ = [
    "CallMetricsRegistry",
    "CircuitBreaker",
    "CircuitBreakerPolicy",
    "CircuitBreakerRegistry",
    "InMemoryCatalogStore",
    "MqttSyncEventPublisher",
    "NoopSyncEventPublisher",
    "PeriodicSyncScheduler",
    "PostgresCatalogStore",
    "RetryPolicy",
    "ScheduledSync",
    "TokenManager",
    "UpstreamCredentials",
    "UpstreamJobsClient",
]
