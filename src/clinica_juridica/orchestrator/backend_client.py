"""
clinica_juridica.orchestrator.backend_client

HTTP client boundary used by the orchestrator to call the backend API.

Responsibilities:
- Attach short-lived JWT credentials (rol=sistema) to every call.
- Call the trámite endpoints that external tasks map to.
- Surface the backend's error message (`detail`) so it can travel back to the engine.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import httpx

from clinica_juridica.auth.jwt import access_config, issue_token
from clinica_juridica.auth.models import SERVICE_ROLE
from clinica_juridica.settings import Settings


class BackendError(Exception):
    """
    `detail` is the backend's own error message when it answered with one.
    """

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail


def _detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        value = body.get("detail") or body.get("error")
        if isinstance(value, str):
            return value
    return None


class BackendClient:
    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http

    def _authz(self) -> dict[str, str]:
        token = issue_token(
            cfg=access_config(self._settings),
            subject=self._settings.orchestrator_service_name,
            token_type="access",
            ttl=timedelta(minutes=5),
            claims={"rol": SERVICE_ROLE},
        )
        return {"Authorization": f"Bearer {token}"}

    async def _send(self, method: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            r = await self._http.request(method, path, json=payload, headers=self._authz())
        except httpx.HTTPError as e:
            raise BackendError(f"Backend no disponible: {e}") from e
        if r.is_error:
            raise BackendError(
                f"Backend respondió {r.status_code} en {method} {path}", detail=_detail(r)
            )
        return r.json()

    async def crear_tramite(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._send("POST", "/api/tramites", data)

    async def actualizar_tramite(self, id_tramite: int, data: dict[str, Any]) -> dict[str, Any]:
        return await self._send("PATCH", f"/api/tramites/{id_tramite}", data)

    async def notificar(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._send("POST", "/api/tramites/notificar", data)
