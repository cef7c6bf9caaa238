"""Manual sync triggers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from job_catalog_sync.api.dependencies import get_sync_runtime
from job_catalog_sync.bootstrap import SyncRuntime
from job_catalog_sync.domain.errors import SyncNotConfiguredError
from job_catalog_sync.domain.status_models import SyncRunResponse
from job_catalog_sync.domain.sync_runs import SyncKind, SyncRunReport, SyncRunStatus

router = APIRouter(prefix="/sync", tags=["sync"])


def _report_response(report: SyncRunReport) -> JSONResponse:
    status_code = 502 if report.status is SyncRunStatus.FAILED else 200
    return JSONResponse(
        status_code=status_code,
        content=SyncRunResponse.from_report(report).model_dump(mode="json", by_alias=True),
    )


async def _trigger(runtime: SyncRuntime, kind: SyncKind) -> JSONResponse:
    try:
        orchestrator = runtime.require_orchestrator()
    except SyncNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    if kind is SyncKind.FULL:
        report = await orchestrator.run_full_sync()
    else:
        report = await orchestrator.run_incremental_sync()
    return _report_response(report)


@router.post(
    "/full",
    response_model=SyncRunResponse,
    responses={502: {"model": SyncRunResponse}, 503: {"description": "Sync not configured"}},
)
async def trigger_full_sync(
    runtime: SyncRuntime = Depends(get_sync_runtime),
) -> JSONResponse:
    """Run a full sync now and return its report."""

    return await _trigger(runtime, SyncKind.FULL)


@router.post(
    "/incremental",
    response_model=SyncRunResponse,
    responses={502: {"model": SyncRunResponse}, 503: {"description": "Sync not configured"}},
)
async def trigger_incremental_sync(
    runtime: SyncRuntime = Depends(get_sync_runtime),
) -> JSONResponse:
    """Run an incremental sync now and return its report."""

    return await _trigger(runtime, SyncKind.INCREMENTAL)


__all__ = ["router"]
