"""
clinica_juridica.workflow.client

HTTP client used by the backend to reach the orchestrator microservice.

Responsibilities:
- Start a process instance for a new trámite (`/api/procesos/iniciar`).
- Normalize transport/HTTP failures and malformed replies into a single `WorkflowError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from clinica_juridica.observability.logging import get_logger

log = get_logger(__name__)


class WorkflowError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class ProcessResult:
    instance_id: str
    business_key: str | None = None


class WorkflowClient:
    def __init__(self, *, http: httpx.AsyncClient) -> None:
        # `http` carries base_url (orchestrator) and timeout.
        self._http = http

    async def iniciar_proceso(self, process_key: str, variables: dict[str, Any]) -> ProcessResult:
        try:
            r = await self._http.post(
                "/api/procesos/iniciar",
                json={"processKey": process_key, "variables": variables},
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise WorkflowError(
                f"Error al iniciar proceso {process_key} en el motor: {_describe(e)}"
            ) from e

        try:
            data = r.json()
        except ValueError as e:
            raise WorkflowError(f"Respuesta no JSON al iniciar {process_key}") from e
        if not isinstance(data, dict):
            raise WorkflowError(f"Respuesta inesperada al iniciar {process_key}: {data!r}")
        instance_id = data.get("instanceId") or data.get("id")
        if not instance_id:
            raise WorkflowError(f"Respuesta sin instanceId al iniciar {process_key}")
        log.info("proceso_iniciado", process_key=process_key, instance_id=instance_id)
        return ProcessResult(instance_id=str(instance_id), business_key=data.get("businessKey"))


def _describe(e: httpx.HTTPError) -> str:
    if isinstance(e, httpx.HTTPStatusError):
        try:
            body = e.response.json()
        except ValueError:
            return str(e)
        if isinstance(body, dict):
            return str(body.get("error") or body.get("detail") or e)
    return str(e)


# --- Module Notes -----------------------------------------------------------
# Callers treat WorkflowError as non-fatal: the trámite exists even if the engine is down.
