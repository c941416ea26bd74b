"""
clinica_juridica.services.auditoria

Audit-trail writer used by every mutating (and most reading) handler.

Responsibilities:
- Attach request metadata (client IP, user agent) to audit rows.
- Keep the call sites short: one `registrar(...)` per action.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import Auditoria
from clinica_juridica.db.repositories.auditoria import AuditoriaRepo


@dataclass(frozen=True, slots=True)
class RequestMeta:
    ip_address: str | None = None
    user_agent: str | None = None


class AuditoriaService:
    def __init__(self, session: AsyncSession, meta: RequestMeta | None = None) -> None:
        self._repo = AuditoriaRepo(session)
        self._meta = meta or RequestMeta()

    async def registrar(
        self,
        *,
        id_usuario: int | None,
        tipo_entidad: str,
        accion: str,
        detalles: str,
        id_entidad: int | None = None,
    ) -> Auditoria:
        return await self._repo.add(
            id_usuario=id_usuario,
            tipo_entidad=tipo_entidad,
            id_entidad=id_entidad,
            accion=accion,
            detalles=detalles,
            ip_address=self._meta.ip_address,
            user_agent=self._meta.user_agent,
        )


def filtros_detalle(prefix: str, filtros: dict[str, object]) -> str:
    applied = [f"{k}: {v}" for k, v in filtros.items() if v is not None and v != ""]
    if not applied:
        return prefix
    return f"{prefix}. Filtros: {', '.join(applied)}"
