from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from panelwatch.logging import configure_structlog
from panelwatch.routers import meta, stream, visibility
from panelwatch.services.container import ServiceContainer

log = structlog.get_logger(__name__)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    container = container or ServiceContainer()
    settings = container.settings
    configure_structlog(settings.log_format, settings.log_level)

    app = FastAPI(title="panelwatch", version="1.0.0")
    app.state.container = container

    # Browser clients (spatial viewers, dashboards) connect cross-origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(meta.router)
    app.include_router(visibility.router)
    app.include_router(stream.router)

    @app.on_event("startup")
    async def _start_poller() -> None:
        log.info(
            "service_starting",
            schema=container.schema.name,
            contract=settings.contract_address,
            poller_enabled=settings.poller_enabled,
        )
        await container.start()

    @app.on_event("shutdown")
    async def _stop_poller() -> None:
        await container.shutdown()
        log.info("service_stopped")

    return app
