"""
clinica_juridica.api.app

FastAPI app factory for the Clínica Jurídica backend.

Responsibilities:
- Build the FastAPI application and register routers/middleware/exception handlers.
- Initialize and dispose shared infrastructure (DB engine/session factory, workflow client).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from clinica_juridica import __version__
from clinica_juridica.api.errors import register_exception_handlers
from clinica_juridica.api.routers.auditorias import router as auditorias_router
from clinica_juridica.api.routers.auth import router as auth_router
from clinica_juridica.api.routers.consultantes import router as consultantes_router
from clinica_juridica.api.routers.fichas import router as fichas_router
from clinica_juridica.api.routers.grupos import router as grupos_router
from clinica_juridica.api.routers.health import router as health_router
from clinica_juridica.api.routers.notificaciones import router as notificaciones_router
from clinica_juridica.api.routers.tramites import router as tramites_router
from clinica_juridica.api.routers.usuarios import router as usuarios_router
from clinica_juridica.auth.tokens import RefreshTokenRegistry
from clinica_juridica.db.init_db import init_db, seed_admin
from clinica_juridica.db.session import create_engine, create_sessionmaker
from clinica_juridica.observability.logging import configure_logging, get_logger
from clinica_juridica.observability.middleware import RequestContextMiddleware
from clinica_juridica.settings import Settings
from clinica_juridica.workflow.client import WorkflowClient

log = get_logger(__name__)


def create_app(
    *, settings: Settings, workflow_transport: httpx.AsyncBaseTransport | None = None
) -> FastAPI:
    """
    `workflow_transport` replaces the network transport of the orchestrator client
    (tests pass an `httpx.MockTransport`).
    """
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        app.state.refresh_tokens = RefreshTokenRegistry()
        if settings.env in ("dev", "test"):
            # Prod should use Alembic migrations.
            await init_db(engine)
        if settings.seed_admin_ci and settings.seed_admin_password:
            await seed_admin(
                app.state.sessionmaker,
                ci=settings.seed_admin_ci,
                password=settings.seed_admin_password,
            )

        http: httpx.AsyncClient | None = None
        if settings.workflow_enabled:
            http = httpx.AsyncClient(
                base_url=settings.orchestrator_url,
                timeout=settings.http_timeout_seconds,
                transport=workflow_transport,
            )
            app.state.workflow_client = WorkflowClient(http=http)
        else:
            app.state.workflow_client = None

        try:
            yield
        finally:
            if http is not None:
                await http.aclose()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Clínica Jurídica API",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(usuarios_router)
    app.include_router(fichas_router)
    app.include_router(tramites_router)
    app.include_router(auditorias_router)
    app.include_router(grupos_router)
    app.include_router(consultantes_router)
    app.include_router(notificaciones_router)

    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; business logic lives in services, persistence in repositories.
