from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any

from fastapi import FastAPI
from fastapi.testclient import TestClient

from job_catalog_sync.api.dependencies import get_sync_runtime
from job_catalog_sync.application.services import (
    SIGNATURE_HEADER,
    SyncOrchestrator,
    SyncStatusService,
    WebhookProcessor,
    compute_signature,
)
from job_catalog_sync.bootstrap import SyncRuntime, build_sync_runtime
from job_catalog_sync.config import Settings
from job_catalog_sync.domain.errors import TransientUpstreamError
from job_catalog_sync.domain.upstream_models import UpstreamJobPage
from job_catalog_sync.infrastructure.events import NoopSyncEventPublisher
from job_catalog_sync.infrastructure.repositories import InMemoryCatalogStore
from job_catalog_sync.infrastructure.resilience import CircuitBreakerRegistry
from job_catalog_sync.main import create_app

SECRET = "whsec-api"


class StaticSource:
    def __init__(self, healthy: bool = True, fail_paging: bool = False) -> None:
        self.healthy = healthy
        self.fail_paging = fail_paging

    async def list_jobs(self, page: int, page_size: int) -> UpstreamJobPage:
        if self.fail_paging:
            raise TransientUpstreamError("upstream unavailable", 503)
        return UpstreamJobPage(jobs=[{"id": "1", "title": "Travel RN"}], page=page, has_more=False)

    async def list_jobs_updated_since(
        self, since: datetime, page_size: int = 100
    ) -> list[dict[str, Any]]:
        return [{"id": "2", "title": "ICU RN"}]

    async def health_check(self) -> None:
        if not self.healthy:
            raise TransientUpstreamError("Upstream reports status 'down'.", 503)


def _app_with(runtime: SyncRuntime) -> FastAPI:
    app = create_app()
    app.dependency_overrides[get_sync_runtime] = lambda: runtime
    return app


def _default_runtime(**settings: Any) -> SyncRuntime:
    return build_sync_runtime(Settings(webhook_secret=SECRET, **settings))


def _runtime_with_source(source: StaticSource) -> SyncRuntime:
    settings = Settings(webhook_secret=SECRET, scheduler_enabled=False)
    store = InMemoryCatalogStore()
    registry = CircuitBreakerRegistry()
    registry.get("upstream")
    orchestrator = SyncOrchestrator(source, store, store)
    return SyncRuntime(
        settings=settings,
        store=store,
        breaker_registry=registry,
        event_publisher=NoopSyncEventPublisher(),
        webhook_processor=WebhookProcessor(store, SECRET),
        status_service=SyncStatusService(registry, store, orchestrator, source),
        orchestrator=orchestrator,
    )


def _signed(event: dict[str, Any]) -> tuple[bytes, dict[str, str]]:
    body = json.dumps(event).encode("utf-8")
    return body, {
        SIGNATURE_HEADER: f"sha256={compute_signature(SECRET, body)}",
        "Content-Type": "application/json",
    }


def test_healthz() -> None:
    with TestClient(_app_with(_default_runtime())) as client:
        response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_status_without_upstream_configuration() -> None:
    with TestClient(_app_with(_default_runtime())) as client:
        response = client.get("/status")

    assert response.status_code == 200
    body = response.json()
    assert body["syncConfigured"] is False
    assert body["lastFullRun"] is None
    assert body["incrementalWatermark"] is None
    assert body["upstreamCalls"] == []


def test_manual_sync_without_upstream_returns_503() -> None:
    with TestClient(_app_with(_default_runtime())) as client:
        full = client.post("/sync/full")
        upstream = client.get("/status/upstream")

    assert full.status_code == 503
    assert "JOB_SYNC_UPSTREAM_BASE_URL" in full.json()["detail"]
    assert upstream.status_code == 503


def test_webhook_with_valid_signature_is_applied() -> None:
    body, headers = _signed({"type": "created", "data": {"id": 7, "title": "icu rn"}})

    with TestClient(_app_with(_default_runtime())) as client:
        response = client.post("/webhooks/upstream", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {
        "status": "processed",
        "eventType": "created",
        "upstreamId": "7",
        "applied": True,
    }


def test_webhook_with_invalid_signature_returns_401() -> None:
    body, headers = _signed({"type": "created", "data": {"id": 7, "title": "icu rn"}})
    headers[SIGNATURE_HEADER] = "sha256=" + "0" * 64
    runtime = _default_runtime()

    with TestClient(_app_with(runtime)) as client:
        response = client.post("/webhooks/upstream", content=body, headers=headers)
        missing = client.post("/webhooks/upstream", content=body)

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid webhook signature"}
    assert missing.status_code == 401


def test_webhook_rejected_when_secret_is_not_configured() -> None:
    body, headers = _signed({"type": "deleted", "upstream_id": "7"})

    with TestClient(_app_with(build_sync_runtime(Settings()))) as client:
        response = client.post("/webhooks/upstream", content=body, headers=headers)

    assert response.status_code == 401


def test_malformed_webhook_returns_500_for_redelivery() -> None:
    body, headers = _signed({"type": "created"})

    with TestClient(_app_with(_default_runtime())) as client:
        response = client.post("/webhooks/upstream", content=body, headers=headers)

    assert response.status_code == 500


def test_untransformable_webhook_job_returns_500_and_stores_nothing() -> None:
    body, headers = _signed({"type": "created", "data": {"id": "7"}})
    runtime = _default_runtime()

    with TestClient(_app_with(runtime)) as client:
        response = client.post("/webhooks/upstream", content=body, headers=headers)

    assert response.status_code == 500
    assert asyncio.run(runtime.store.count()) == 0


def test_webhook_for_mismatched_ids_returns_500_and_stores_nothing() -> None:
    body, headers = _signed(
        {"type": "updated", "upstream_id": "A", "data": {"id": "B", "title": "icu rn"}}
    )
    runtime = _default_runtime()

    with TestClient(_app_with(runtime)) as client:
        response = client.post("/webhooks/upstream", content=body, headers=headers)

    assert response.status_code == 500
    assert asyncio.run(runtime.store.get("A")) is None
    assert asyncio.run(runtime.store.get("B")) is None


def test_webhook_delete_for_unknown_job_is_acknowledged() -> None:
    body, headers = _signed({"type": "deleted", "upstream_id": "unknown"})

    with TestClient(_app_with(_default_runtime())) as client:
        response = client.post("/webhooks/upstream", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json()["applied"] is False


def test_manual_incremental_sync_updates_status() -> None:
    runtime = _runtime_with_source(StaticSource())

    with TestClient(_app_with(runtime)) as client:
        response = client.post("/sync/incremental")
        status = client.get("/status")

    assert response.status_code == 200
    assert response.json()["status"] == "succeeded"
    assert response.json()["upserted"] == 1
    body = status.json()
    assert body["syncConfigured"] is True
    assert body["lastIncrementalRun"]["status"] == "succeeded"
    assert body["incrementalWatermark"] is not None


def test_failed_manual_sync_returns_502() -> None:
    runtime = _runtime_with_source(StaticSource(fail_paging=True))

    with TestClient(_app_with(runtime)) as client:
        response = client.post("/sync/full")

    assert response.status_code == 502
    body = response.json()
    assert body["status"] == "failed"
    assert body["error"] == "upstream unavailable"


def test_upstream_probe_reflects_health() -> None:
    with TestClient(_app_with(_runtime_with_source(StaticSource()))) as client:
        healthy = client.get("/status/upstream")
    with TestClient(_app_with(_runtime_with_source(StaticSource(healthy=False)))) as client:
        unhealthy = client.get("/status/upstream")

    assert healthy.status_code == 200
    assert healthy.json()["healthy"] is True
    assert healthy.json()["circuit"]["state"] == "closed"
    assert unhealthy.status_code == 503
    assert unhealthy.json()["detail"] == "Upstream reports status 'down'."
