"""Application bootstrap/wiring."""

import logging

from job_catalog_sync.application.services import (
    SyncOrchestrator,
    SyncStatusService,
    WebhookProcessor,
)
from job_catalog_sync.config import RepositoryBackend, Settings
from job_catalog_sync.domain.errors import SyncNotConfiguredError
from job_catalog_sync.domain.ports import SyncEventPublisher
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

logger = logging.getLogger(__name__)

UPSTREAM_DEPENDENCY = "upstream"

CatalogBackend = InMemoryCatalogStore | PostgresCatalogStore


class SyncRuntime:
    """Service graph plus its start/stop lifecycle."""

    def __init__(
        self,
        *,
        settings: Settings,
        store: CatalogBackend,
        breaker_registry: CircuitBreakerRegistry,
        event_publisher: SyncEventPublisher,
        webhook_processor: WebhookProcessor,
        status_service: SyncStatusService,
        upstream_client: UpstreamJobsClient | None = None,
        orchestrator: SyncOrchestrator | None = None,
        scheduler: PeriodicSyncScheduler | None = None,
        call_metrics: CallMetricsRegistry | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.breaker_registry = breaker_registry
        self.event_publisher = event_publisher
        self.webhook_processor = webhook_processor
        self.status_service = status_service
        self.upstream_client = upstream_client
        self.orchestrator = orchestrator
        self.scheduler = scheduler
        self.call_metrics = call_metrics

    def require_orchestrator(self) -> SyncOrchestrator:
        """Return the orchestrator or raise when no upstream is configured."""

        if self.orchestrator is None:
            raise SyncNotConfiguredError(
                "Sync is disabled: set JOB_SYNC_UPSTREAM_BASE_URL, "
                "JOB_SYNC_UPSTREAM_CLIENT_ID and JOB_SYNC_UPSTREAM_CLIENT_SECRET."
            )
        return self.orchestrator

    async def start(self) -> None:
        """Start periodic syncs when scheduling is enabled."""

        if self.scheduler is not None:
            await self.scheduler.start()

    async def shutdown(self) -> None:
        """Stop scheduling, cancel in-flight runs, and release connections."""

        if self.orchestrator is not None:
            self.orchestrator.request_stop()
        if self.scheduler is not None:
            await self.scheduler.stop()
        if isinstance(self.store, PostgresCatalogStore):
            await self.store.close()
        if isinstance(self.event_publisher, MqttSyncEventPublisher):
            self.event_publisher.close()


def _build_store(settings: Settings) -> CatalogBackend:
    if settings.repository_backend == RepositoryBackend.POSTGRES:
        if settings.postgres_dsn is None:
            raise ValueError(
                "JOB_SYNC_POSTGRES_DSN is required when JOB_SYNC_REPOSITORY_BACKEND=postgres."
            )
        return PostgresCatalogStore(
            dsn=settings.postgres_dsn,
            min_pool_size=settings.postgres_pool_min_size,
            max_pool_size=settings.postgres_pool_max_size,
        )
    return InMemoryCatalogStore()


def _build_sync_event_publisher(settings: Settings) -> SyncEventPublisher:
    if settings.sync_events_mqtt_enabled:
        if settings.sync_events_mqtt_host is None:
            raise ValueError(
                "JOB_SYNC_SYNC_EVENTS_MQTT_HOST is required when "
                "JOB_SYNC_SYNC_EVENTS_MQTT_ENABLED=true."
            )
        return MqttSyncEventPublisher(
            instance_id=settings.instance_id,
            broker_host=settings.sync_events_mqtt_host,
            broker_port=settings.sync_events_mqtt_port,
            topic_prefix=settings.sync_events_mqtt_topic_prefix,
            qos=settings.sync_events_mqtt_qos,
            username=settings.sync_events_mqtt_username,
            password=settings.sync_events_mqtt_password,
        )
    return NoopSyncEventPublisher()


def _build_breaker_registry(settings: Settings) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(
        CircuitBreakerPolicy(
            failure_threshold=settings.circuit_failure_threshold,
            reset_timeout_seconds=settings.circuit_reset_timeout_seconds,
            success_threshold=settings.circuit_success_threshold,
            half_open_max_calls=settings.circuit_half_open_max_calls,
        )
    )


def _build_upstream_client(
    settings: Settings,
    breaker_registry: CircuitBreakerRegistry,
    call_metrics: CallMetricsRegistry,
) -> UpstreamJobsClient | None:
    token_url = settings.resolved_upstream_token_url
    if (
        not settings.upstream_configured
        or settings.upstream_base_url is None
        or settings.upstream_client_id is None
        or settings.upstream_client_secret is None
        or token_url is None
    ):
        logger.warning(
            "Upstream settings are incomplete; scheduled and manual syncs are disabled. "
            "Webhooks and status routes stay available."
        )
        return None

    token_manager = TokenManager(
        UpstreamCredentials(
            client_id=settings.upstream_client_id,
            client_secret=settings.upstream_client_secret,
            token_url=token_url,
            scope=settings.upstream_scope,
        ),
        dependency=UPSTREAM_DEPENDENCY,
        safety_margin_seconds=settings.token_safety_margin_seconds,
        timeout_seconds=settings.upstream_timeout_seconds,
    )
    return UpstreamJobsClient(
        base_url=settings.upstream_base_url,
        token_manager=token_manager,
        circuit_breaker=breaker_registry.get(UPSTREAM_DEPENDENCY),
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            initial_delay_seconds=settings.retry_initial_delay_seconds,
            max_delay_seconds=settings.retry_max_delay_seconds,
            multiplier=settings.retry_backoff_multiplier,
            jitter_ratio=settings.retry_jitter_ratio,
        ),
        timeout_seconds=settings.upstream_timeout_seconds,
        max_pages=settings.full_sync_max_pages,
        call_metrics=call_metrics,
    )


def _build_scheduler(
    settings: Settings,
    orchestrator: SyncOrchestrator | None,
) -> PeriodicSyncScheduler | None:
    if orchestrator is None or not settings.scheduler_enabled:
        return None
    return PeriodicSyncScheduler(
        [
            ScheduledSync(
                name="full",
                interval_seconds=settings.full_sync_interval_seconds,
                run=orchestrator.run_full_sync,
                run_on_startup=settings.full_sync_on_startup,
            ),
            ScheduledSync(
                name="incremental",
                interval_seconds=settings.incremental_sync_interval_seconds,
                run=orchestrator.run_incremental_sync,
                run_on_startup=settings.incremental_sync_on_startup,
            ),
        ]
    )


def build_sync_runtime(settings: Settings) -> SyncRuntime:
    """Compose service graph."""

    store = _build_store(settings)
    breaker_registry = _build_breaker_registry(settings)
    event_publisher = _build_sync_event_publisher(settings)
    call_metrics = CallMetricsRegistry()
    upstream_client = _build_upstream_client(settings, breaker_registry, call_metrics)

    orchestrator = None
    if upstream_client is not None:
        orchestrator = SyncOrchestrator(
            source=upstream_client,
            store=store,
            state_repository=store,
            event_publisher=event_publisher,
            page_size=settings.upstream_page_size,
            max_pages=settings.full_sync_max_pages,
            run_timeout_seconds=settings.sync_run_timeout_seconds,
            initial_lookback_seconds=settings.incremental_initial_lookback_seconds,
        )

    if settings.webhook_secret is None:
        logger.warning("JOB_SYNC_WEBHOOK_SECRET is not set; every webhook will be rejected.")

    return SyncRuntime(
        settings=settings,
        store=store,
        breaker_registry=breaker_registry,
        event_publisher=event_publisher,
        webhook_processor=WebhookProcessor(store, settings.webhook_secret),
        status_service=SyncStatusService(
            breaker_registry,
            store,
            orchestrator,
            upstream_client,
            dependency=UPSTREAM_DEPENDENCY,
            call_metrics=call_metrics,
        ),
        upstream_client=upstream_client,
        orchestrator=orchestrator,
        scheduler=_build_scheduler(settings, orchestrator),
        call_metrics=call_metrics,
    )


__all__ = ["SyncRuntime", "UPSTREAM_DEPENDENCY", "build_sync_runtime"]
