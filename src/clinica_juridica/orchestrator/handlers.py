"""
clinica_juridica.orchestrator.handlers

External-task topic handlers.

Responsibilities:
- Map each subscribed topic to one backend call.
- Declare the BPMN error code and default message reported when the call fails.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from clinica_juridica.orchestrator.backend_client import BackendClient


class TaskVariableError(ValueError):
    pass


def _require(variables: dict[str, Any], *names: str) -> None:
    missing = [n for n in names if variables.get(n) is None]
    if missing:
        raise TaskVariableError(f"Variables faltantes: {', '.join(missing)}")


async def crear_tramite(backend: BackendClient, variables: dict[str, Any]) -> dict[str, Any]:
    _require(variables, "id_consultante", "id_grupo")
    num_carpeta = variables.get("num_carpeta")
    return await backend.crear_tramite(
        {
            "id_consultante": variables["id_consultante"],
            "id_grupo": variables["id_grupo"],
            "num_carpeta": str(num_carpeta) if num_carpeta is not None else None,
            "observaciones": variables.get("observaciones"),
        }
    )


async def actualizar_estado(backend: BackendClient, variables: dict[str, Any]) -> dict[str, Any]:
    _require(variables, "id_tramite")
    # Absent variables stay absent so the backend leaves those fields untouched.
    cambios = {
        name: variables[name]
        for name in ("estado", "observaciones")
        if variables.get(name) is not None
    }
    return await backend.actualizar_tramite(int(variables["id_tramite"]), cambios)


async def enviar_notificacion(backend: BackendClient, variables: dict[str, Any]) -> dict[str, Any]:
    _require(variables, "id_tramite", "mensaje")
    return await backend.notificar(
        {
            "id_tramite": variables["id_tramite"],
            "tipo_notificacion": variables.get("tipo_notificacion"),
            "mensaje": variables["mensaje"],
        }
    )


@dataclass(frozen=True, slots=True)
class TopicHandler:
    topic: str
    error_code: str
    default_message: str
    run: Callable[[BackendClient, dict[str, Any]], Awaitable[dict[str, Any]]]


HANDLERS: tuple[TopicHandler, ...] = (
    TopicHandler("crear-tramite", "TRAMITE_ERROR", "Error al crear trámite", crear_tramite),
    TopicHandler(
        "actualizar-estado", "UPDATE_ERROR", "Error al actualizar trámite", actualizar_estado
    ),
    TopicHandler(
        "enviar-notificacion",
        "NOTIFICATION_ERROR",
        "Error al enviar notificación",
        enviar_notificacion,
    ),
)
