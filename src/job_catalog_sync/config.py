"""Application settings."""

from enum import StrEnum

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RepositoryBackend(StrEnum):
    """Available catalog store adapters."""

    IN_MEMORY = "in_memory"
    POSTGRES = "postgres"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Job Catalog Sync"
    api_prefix: str = ""
    instance_id: str = "job-sync-local"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"

    upstream_base_url: str | None = None
    upstream_token_url: str | None = None
    upstream_client_id: str | None = None
    upstream_client_secret: str | None = None
    upstream_scope: str | None = None
    upstream_timeout_seconds: float = 10.0
    upstream_page_size: int = 100
    token_safety_margin_seconds: float = 60.0

    retry_max_attempts: int = 3
    retry_initial_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    retry_backoff_multiplier: float = 2.0
    retry_jitter_ratio: float = 0.3

    circuit_failure_threshold: int = 5
    circuit_reset_timeout_seconds: float = 30.0
    circuit_success_threshold: int = 2
    circuit_half_open_max_calls: int = 1

    scheduler_enabled: bool = True
    full_sync_interval_seconds: float = 86_400.0
    incremental_sync_interval_seconds: float = 900.0
    full_sync_on_startup: bool = False
    incremental_sync_on_startup: bool = True
    sync_run_timeout_seconds: float = 3600.0
    incremental_initial_lookback_seconds: float = 86_400.0
    full_sync_max_pages: int = 10_000

    webhook_secret: str | None = None

    repository_backend: RepositoryBackend = RepositoryBackend.IN_MEMORY
    postgres_dsn: str | None = None
    postgres_pool_min_size: int = 1
    postgres_pool_max_size: int = 10

    sync_events_mqtt_enabled: bool = False
    sync_events_mqtt_host: str | None = None
    sync_events_mqtt_port: int = 1883
    sync_events_mqtt_username: str | None = None
    sync_events_mqtt_password: str | None = None
    sync_events_mqtt_topic_prefix: str = "jobsync"
    sync_events_mqtt_qos: int = 0

    @field_validator(
        "upstream_base_url",
        "upstream_token_url",
        "upstream_client_id",
        "upstream_client_secret",
        "upstream_scope",
        "webhook_secret",
        mode="before",
    )
    @classmethod
    def blank_as_unset(cls, value: object) -> object:
        """Treat empty env var values as unset."""

        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def upstream_configured(self) -> bool:
        """Whether enough upstream settings are present to run syncs."""

        return bool(
            self.upstream_base_url and self.upstream_client_id and self.upstream_client_secret
        )

    @property
    def resolved_upstream_token_url(self) -> str | None:
        """Token endpoint, defaulting to `<base>/oauth/token`."""

        if self.upstream_token_url:
            return self.upstream_token_url
        if self.upstream_base_url is None:
            return None
        return f"{self.upstream_base_url.strip().rstrip('/')}/oauth/token"

    @model_validator(mode="after")
    def validate_repository_settings(self) -> "Settings":
        """Ensure backend-specific settings are valid."""

        if self.repository_backend == RepositoryBackend.POSTGRES and not self.postgres_dsn:
            raise ValueError(
                "JOB_SYNC_POSTGRES_DSN is required when JOB_SYNC_REPOSITORY_BACKEND=postgres."
            )
        if self.postgres_pool_min_size < 1:
            raise ValueError("JOB_SYNC_POSTGRES_POOL_MIN_SIZE must be >= 1.")
        if self.postgres_pool_max_size < self.postgres_pool_min_size:
            raise ValueError(
                "JOB_SYNC_POSTGRES_POOL_MAX_SIZE must be >= JOB_SYNC_POSTGRES_POOL_MIN_SIZE."
            )
        if self.sync_events_mqtt_enabled and not self.sync_events_mqtt_host:
            raise ValueError(
                "JOB_SYNC_SYNC_EVENTS_MQTT_HOST is required when "
                "JOB_SYNC_SYNC_EVENTS_MQTT_ENABLED=true."
            )
        if self.sync_events_mqtt_port < 1:
            raise ValueError("JOB_SYNC_SYNC_EVENTS_MQTT_PORT must be >= 1.")
        if self.sync_events_mqtt_qos not in {0, 1, 2}:
            raise ValueError("JOB_SYNC_SYNC_EVENTS_MQTT_QOS must be one of 0, 1, 2.")
        return self

    @model_validator(mode="after")
    def validate_sync_settings(self) -> "Settings":
        """Ensure retry, breaker, and scheduling settings are coherent."""

        if self.upstream_timeout_seconds <= 0:
            raise ValueError("JOB_SYNC_UPSTREAM_TIMEOUT_SECONDS must be > 0.")
        if self.upstream_page_size < 1:
            raise ValueError("JOB_SYNC_UPSTREAM_PAGE_SIZE must be >= 1.")
        if self.token_safety_margin_seconds < 0:
            raise ValueError("JOB_SYNC_TOKEN_SAFETY_MARGIN_SECONDS must be >= 0.")
        if self.retry_max_attempts < 1:
            raise ValueError("JOB_SYNC_RETRY_MAX_ATTEMPTS must be >= 1.")
        if self.retry_initial_delay_seconds < 0:
            raise ValueError("JOB_SYNC_RETRY_INITIAL_DELAY_SECONDS must be >= 0.")
        if self.retry_max_delay_seconds < self.retry_initial_delay_seconds:
            raise ValueError(
                "JOB_SYNC_RETRY_MAX_DELAY_SECONDS must be >= "
                "JOB_SYNC_RETRY_INITIAL_DELAY_SECONDS."
            )
        if self.retry_backoff_multiplier < 1:
            raise ValueError("JOB_SYNC_RETRY_BACKOFF_MULTIPLIER must be >= 1.")
        if not 0 <= self.retry_jitter_ratio <= 1:
            raise ValueError("JOB_SYNC_RETRY_JITTER_RATIO must be between 0 and 1.")
        if self.circuit_failure_threshold < 1:
            raise ValueError("JOB_SYNC_CIRCUIT_FAILURE_THRESHOLD must be >= 1.")
        if self.circuit_reset_timeout_seconds <= 0:
            raise ValueError("JOB_SYNC_CIRCUIT_RESET_TIMEOUT_SECONDS must be > 0.")
        if self.circuit_success_threshold < 1:
            raise ValueError("JOB_SYNC_CIRCUIT_SUCCESS_THRESHOLD must be >= 1.")
        if self.circuit_half_open_max_calls < 1:
            raise ValueError("JOB_SYNC_CIRCUIT_HALF_OPEN_MAX_CALLS must be >= 1.")
        if self.full_sync_interval_seconds <= 0:
            raise ValueError("JOB_SYNC_FULL_SYNC_INTERVAL_SECONDS must be > 0.")
        if self.incremental_sync_interval_seconds <= 0:
            raise ValueError("JOB_SYNC_INCREMENTAL_SYNC_INTERVAL_SECONDS must be > 0.")
        if self.sync_run_timeout_seconds <= 0:
            raise ValueError("JOB_SYNC_SYNC_RUN_TIMEOUT_SECONDS must be > 0.")
        if self.upstream_timeout_seconds >= self.sync_run_timeout_seconds:
            raise ValueError(
                "JOB_SYNC_UPSTREAM_TIMEOUT_SECONDS must be < JOB_SYNC_SYNC_RUN_TIMEOUT_SECONDS."
            )
        if self.incremental_initial_lookback_seconds < 0:
            raise ValueError("JOB_SYNC_INCREMENTAL_INITIAL_LOOKBACK_SECONDS must be >= 0.")
        if self.full_sync_max_pages < 1:
            raise ValueError("JOB_SYNC_FULL_SYNC_MAX_PAGES must be >= 1.")
        return self

    model_config = SettingsConfigDict(env_prefix="JOB_SYNC_", extra="ignore")


__all__ = ["RepositoryBackend", "Settings"]
