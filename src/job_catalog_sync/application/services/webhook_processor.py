"""Push-based single-record change notifications from the upstream."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import ValidationError

from job_catalog_sync.application.transform import transform_job
from job_catalog_sync.domain.errors import InvalidSignatureError, WebhookPayloadError
from job_catalog_sync.domain.ports import CatalogStore
from job_catalog_sync.domain.status_models import WebhookAckResponse
from job_catalog_sync.domain.upstream_models import WebhookEvent, WebhookEventType

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Upstream-Signature"
_SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of `body` under `secret`."""

    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str | None, body: bytes, signature: str | None) -> None:
    """Raise `InvalidSignatureError` unless `signature` authenticates `body`.

    Accepts `sha256=<hex>` or bare hex. Without a configured secret nothing
    verifies.
    """

    if not secret:
        raise InvalidSignatureError("Webhook secret is not configured.")
    if not signature or not signature.strip():
        raise InvalidSignatureError("Webhook signature is missing.")

    provided = signature.strip().removeprefix(_SIGNATURE_PREFIX).lower()
    expected = compute_signature(secret, body)
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise InvalidSignatureError("Webhook signature does not match.")


class WebhookProcessor:
    """Verify, parse, and apply one webhook event to the catalog store."""

    def __init__(
        self,
        store: CatalogStore,
        secret: str | None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._secret = secret
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    async def process(self, body: bytes, signature: str | None) -> WebhookAckResponse:
        """Apply an event; the signature is checked before anything else happens."""

        try:
            verify_signature(self._secret, body, signature)
        except InvalidSignatureError as exc:
            logger.warning("Rejected webhook: %s", exc)
            raise

        event = self._parse_event(body)
        assert event.upstream_id is not None
        upstream_id = event.upstream_id

        if event.event_type is WebhookEventType.DELETED:
            applied = await self._store.mark_expired(upstream_id)
            if applied:
                logger.info("Webhook expired job '%s'.", upstream_id)
            else:
                logger.info("Webhook delete for unknown job '%s'; nothing to expire.", upstream_id)
            return WebhookAckResponse(
                event_type=event.event_type.value,
                upstream_id=upstream_id,
                applied=applied,
            )

        assert event.data is not None
        payload = dict(event.data)
        payload["id"] = upstream_id
        record = transform_job(payload, synced_at=self._clock())
        await self._store.upsert(record)
        logger.info("Webhook %s job '%s'.", event.event_type, record.upstream_id)
        return WebhookAckResponse(
            event_type=event.event_type.value,
            upstream_id=record.upstream_id,
            applied=True,
        )

    def _parse_event(self, body: bytes) -> WebhookEvent:
        try:
            raw = json.loads(body)
        except ValueError as exc:
            raise WebhookPayloadError("Webhook body is not valid JSON.") from exc
        if not isinstance(raw, dict):
            raise WebhookPayloadError("Webhook body must be a JSON object.")
        try:
            return WebhookEvent.model_validate(raw)
        except ValidationError as exc:
            raise WebhookPayloadError(
                f"Webhook body is not a valid event: {exc.error_count()} invalid field(s)."
            ) from exc


__all__ = [
    "SIGNATURE_HEADER",
    "WebhookProcessor",
    "compute_signature",
    "verify_signature",
]
