"""FastAPI application setup."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from redyce.api.controller import jobs_router, requirements_router
from redyce.api.errors import InvalidRequestError, register_exception_handlers
from redyce.bootstrap import ServiceContainer, build_services
from redyce.config import configure_logging, get_config

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 5 * 60


async def _cleanup_loop(services: ServiceContainer, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        services.priority_manager.heartbeat()
        services.priority_manager.cleanup()


def create_app(
    services: Optional[ServiceContainer] = None,
    cleanup_interval: float = CLEANUP_INTERVAL_SECONDS,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        services: Pre-built services; built from the configuration at
            start-up when omitted, and then closed at shutdown.
        cleanup_interval: Seconds between evictions of finished jobs and lease
            renewals; must stay below jobs.lease_seconds.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = services is None
        if owned:
            config = get_config()
            configure_logging(config)
            app.state.services = build_services(config)
        else:
            app.state.services = services

        app.state.services.start()
        cleanup_task = asyncio.create_task(_cleanup_loop(app.state.services, cleanup_interval))
        logger.info("Requirement extraction API started")

        yield

        cleanup_task.cancel()
        await asyncio.gather(cleanup_task, return_exceptions=True)
        if owned:
            await app.state.services.close()
        else:
            await app.state.services.stop()
        logger.info("Requirement extraction API stopped")

    app = FastAPI(
        title="Redyce Requirements API",
        description="Requirement extraction for tender documents",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(requirements_router)
    app.include_router(jobs_router)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


__all__ = ["InvalidRequestError", "create_app"]
