"""FastAPI application entrypoint."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from job_catalog_sync import __version__
from job_catalog_sync.api import api_router
from job_catalog_sync.api.dependencies import get_settings, get_sync_runtime


def create_app() -> FastAPI:
    """Build FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Build the service graph, start the scheduler, and stop it on shutdown."""

        runtime_provider = app.dependency_overrides.get(get_sync_runtime, get_sync_runtime)
        runtime = runtime_provider()
        await runtime.start()
        try:
            yield
        finally:
            await runtime.shutdown()

    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()


def run() -> None:
    """Run local development server."""

    settings = get_settings()
    uvicorn.run(
        "job_catalog_sync.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        reload=False,
    )


__all__ = ["app", "create_app", "run"]
