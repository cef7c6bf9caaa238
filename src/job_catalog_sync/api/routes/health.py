"""Health and status routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from job_catalog_sync.api.dependencies import get_status_service
from job_catalog_sync.application.services import SyncStatusService
from job_catalog_sync.domain.errors import SyncNotConfiguredError
from job_catalog_sync.domain.status_models import SyncStatusResponse, UpstreamHealthResponse

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness probe."""

    return {"status": "ok"}


@router.get("/status", response_model=SyncStatusResponse, status_code=200)
async def sync_status(
    service: SyncStatusService = Depends(get_status_service),
) -> SyncStatusResponse:
    """Circuit states, sync markers, and the latest run outcomes."""

    return await service.get_status()


@router.get(
    "/status/upstream",
    response_model=UpstreamHealthResponse,
    responses={503: {"model": UpstreamHealthResponse}},
)
async def upstream_status(
    service: SyncStatusService = Depends(get_status_service),
) -> JSONResponse:
    """Probe the upstream health endpoint."""

    try:
        result = await service.probe_upstream()
    except SyncNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return JSONResponse(
        status_code=200 if result.healthy else 503,
        content=result.model_dump(mode="json", by_alias=True),
    )


__all__ = ["router"]
