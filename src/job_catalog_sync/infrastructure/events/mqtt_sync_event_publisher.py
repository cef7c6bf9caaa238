"""MQTT sync event publisher."""

from __future__ import annotations

import asyncio
import json
import time
from datetime import UTC, datetime
from typing import Any

from job_catalog_sync.domain.ports import SyncEventPublisher
from job_catalog_sync.domain.sync_runs import SyncRunReport


class MqttSyncEventPublisher(SyncEventPublisher):
    """Publish sync run reports to `<prefix>/<instance>/runs/<kind>`."""

    def __init__(
        self,
        instance_id: str,
        broker_host: str,
        broker_port: int = 1883,
        topic_prefix: str = "jobsync",
        qos: int = 0,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        if not broker_host.strip():
            raise ValueError("broker_host cannot be empty.")
        if qos not in {0, 1, 2}:
            raise ValueError("qos must be one of 0, 1, 2.")

        self._instance_id = instance_id
        self._topic_prefix = topic_prefix.strip().strip("/")
        self._qos = qos

        try:
            import paho.mqtt.client as mqtt  # type: ignore[import-untyped]
        except ModuleNotFoundError as exc:
            raise RuntimeError(
                "paho-mqtt is required for MQTT sync events. "
                "Install project dependencies first."
            ) from exc

        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=f"job-catalog-sync-{instance_id}",
        )
        if username is not None:
            client.username_pw_set(username=username, password=password)
        self._connect_with_retry(
            client=client,
            broker_host=broker_host,
            broker_port=broker_port,
        )
        client.loop_start()
        self._client = client

    async def publish_run_report(self, report: SyncRunReport) -> None:
        payload: dict[str, object] = {
            "eventType": "syncRun",
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "instanceId": self._instance_id,
            **self._report_payload(report),
        }
        topic = f"{self._topic_prefix}/{self._instance_id}/runs/{report.kind.value}"
        message = json.dumps(payload, separators=(",", ":"))
        await asyncio.to_thread(self._client.publish, topic, message, self._qos)

    def close(self) -> None:
        """Stop the network loop and disconnect."""

        self._client.loop_stop()
        self._client.disconnect()

    def _report_payload(self, report: SyncRunReport) -> dict[str, object]:
        return {
            "kind": report.kind.value,
            "status": report.status.value,
            "startedAt": report.started_at.isoformat(),
            "finishedAt": report.finished_at.isoformat(),
            "durationSeconds": report.duration_seconds,
            "fetched": report.fetched,
            "upserted": report.upserted,
            "transformFailures": report.transform_failures,
            "storeFailures": report.store_failures,
            "pages": report.pages,
            "watermark": None if report.watermark is None else report.watermark.isoformat(),
            "error": report.error,
        }

    def _connect_with_retry(
        self,
        client: Any,
        broker_host: str,
        broker_port: int,
        max_attempts: int = 20,
    ) -> None:
        """Connect to MQTT broker with bounded retry/backoff."""

        delay_seconds = 0.5
        last_error: Exception | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                client.connect(host=broker_host, port=broker_port, keepalive=60)
                return
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                if attempt == max_attempts:
                    break
                time.sleep(delay_seconds)
                delay_seconds = min(3.0, delay_seconds * 1.5)

        raise RuntimeError(
            f"Failed to connect to MQTT broker {broker_host}:{broker_port} "
            f"after {max_attempts} attempts."
        ) from last_error


__all__ = ["MqttSyncEventPublisher"]
