"""Upstream webhook receiver."""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from job_catalog_sync.api.dependencies import get_webhook_processor
from job_catalog_sync.application.services import SIGNATURE_HEADER, WebhookProcessor
from job_catalog_sync.domain.errors import (
    InvalidSignatureError,
    RecordTransformError,
    WebhookPayloadError,
)
from job_catalog_sync.domain.status_models import WebhookAckResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _raise_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, InvalidSignatureError):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
    if isinstance(exc, (WebhookPayloadError, RecordTransformError)):
        logger.warning("Webhook could not be applied: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))
    logger.exception("Webhook processing failed.", exc_info=exc)
    raise HTTPException(status_code=500, detail="Webhook processing failed")


@router.post(
    "/upstream",
    response_model=WebhookAckResponse,
    responses={
        401: {"description": "Invalid signature"},
        500: {"description": "Processing failed; redeliver"},
    },
)
async def receive_upstream_webhook(
    request: Request,
    signature: str | None = Header(default=None, alias=SIGNATURE_HEADER),
    processor: WebhookProcessor = Depends(get_webhook_processor),
) -> WebhookAckResponse:
    """Verify and apply one signed change notification."""

    body = await request.body()
    try:
        return await processor.process(body, signature)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)


__all__ = ["router"]
