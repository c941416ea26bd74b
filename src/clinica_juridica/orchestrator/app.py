"""
clinica_juridica.orchestrator.app

FastAPI app factory for the orchestrator microservice.

Responsibilities:
- Wire the engine client, backend client and external-task worker.
- Start/stop the polling loop with the application lifespan.
- Expose `/health` and the process endpoints the backend calls.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from datetime import UTC, datetime
from typing import Any

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from clinica_juridica import __version__
from clinica_juridica.observability.logging import configure_logging, get_logger
from clinica_juridica.observability.middleware import RequestContextMiddleware
from clinica_juridica.orchestrator.backend_client import BackendClient
from clinica_juridica.orchestrator.engine import CamundaClient, EngineError
from clinica_juridica.orchestrator.worker import ExternalTaskWorker
from clinica_juridica.settings import Settings

log = get_logger(__name__)


class IniciarProcesoRequest(BaseModel):
    processKey: str = Field(min_length=1)
    variables: dict[str, Any] = Field(default_factory=dict)
    businessKey: str | None = None


class IniciarProcesoResponse(BaseModel):
    instanceId: str
    businessKey: str | None = None


class CompletarTareaRequest(BaseModel):
    variables: dict[str, Any] = Field(default_factory=dict)


def _engine(request: Request) -> CamundaClient:
    return request.app.state.engine_client  # type: ignore[attr-defined]


async def _engine_error(_: Request, exc: EngineError) -> JSONResponse:
    log.error("engine_error", detail=exc.message, status=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(
    *,
    settings: Settings,
    camunda_transport: httpx.AsyncBaseTransport | None = None,
    backend_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    configure_logging(service_name=settings.orchestrator_service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Long polls hold the request open for asyncResponseTimeout; the client must outlast it.
        poll_timeout = settings.worker_async_response_timeout_ms / 1000 + settings.http_timeout_seconds
        camunda_http = httpx.AsyncClient(
            base_url=settings.camunda_url, timeout=poll_timeout, transport=camunda_transport
        )
        backend_http = httpx.AsyncClient(
            base_url=settings.backend_url,
            timeout=settings.http_timeout_seconds,
            transport=backend_transport,
        )
        engine = CamundaClient(http=camunda_http, worker_id=settings.worker_id)
        worker = ExternalTaskWorker(
            engine=engine,
            backend=BackendClient(settings=settings, http=backend_http),
            settings=settings,
        )
        app.state.engine_client = engine
        app.state.worker = worker

        stop = asyncio.Event()
        poller: asyncio.Task[None] | None = None
        if settings.worker_autopoll:
            poller = asyncio.create_task(worker.run(stop))
        log.info(
            "orchestrator_started",
            camunda_url=settings.camunda_url,
            backend_url=settings.backend_url,
            autopoll=settings.worker_autopoll,
        )

        try:
            yield
        finally:
            stop.set()
            if poller is not None:
                # A fetchAndLock may be mid long-poll; cancel instead of waiting it out.
                poller.cancel()
                with suppress(asyncio.CancelledError):
                    await poller
            await camunda_http.aclose()
            await backend_http.aclose()
            log.info("orchestrator_stopped")

    app = FastAPI(
        title="Clínica Jurídica Orchestrator",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(EngineError, _engine_error)  # type: ignore[arg-type]

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {
            "status": "ok",
            "service": settings.orchestrator_service_name,
            "timestamp": datetime.now(tz=UTC).isoformat(),
        }

    @app.post("/api/procesos/iniciar", response_model=IniciarProcesoResponse)
    async def iniciar_proceso(
        body: IniciarProcesoRequest, engine: CamundaClient = Depends(_engine)
    ) -> IniciarProcesoResponse:
        data = await engine.start_process(
            body.processKey, variables=body.variables, business_key=body.businessKey
        )
        return IniciarProcesoResponse(
            instanceId=str(data["id"]), businessKey=data.get("businessKey")
        )

    @app.post("/api/procesos/{process_instance_id}/completar-tarea")
    async def completar_tarea(
        process_instance_id: str,
        body: CompletarTareaRequest | None = None,
        engine: CamundaClient = Depends(_engine),
    ) -> dict[str, str]:
        task_id = await engine.complete_user_task(
            process_instance_id, variables=body.variables if body else {}
        )
        return {"message": "Tarea completada", "taskId": task_id}

    return app
