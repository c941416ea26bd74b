"""
clinica_juridica.api.routers.auditorias

Audit-trail read endpoints (administradores only).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.api.deps import db_session
from clinica_juridica.api.schemas import AuditoriaOut
from clinica_juridica.auth.deps import get_current_usuario
from clinica_juridica.db.models import Auditoria, Rol, Usuario
from clinica_juridica.db.repositories.auditoria import AuditoriaRepo
from clinica_juridica.services.errors import Prohibido

router = APIRouter(prefix="/api/auditorias", tags=["auditorias"])


async def _admin(actor: Usuario = Depends(get_current_usuario)) -> Usuario:
    if actor.rol != Rol.administrador:
        raise Prohibido("Solo los administradores pueden consultar la auditoría")
    return actor


@router.get("", response_model=list[AuditoriaOut])
async def list_auditorias(
    tipo_entidad: str | None = None,
    accion: str | None = None,
    id_usuario: int | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    _: Usuario = Depends(_admin),
    session: AsyncSession = Depends(db_session),
) -> list[Auditoria]:
    return await AuditoriaRepo(session).list(
        tipo_entidad=tipo_entidad, accion=accion, id_usuario=id_usuario, limit=limit
    )


@router.get("/stats")
async def auditorias_stats(
    _: Usuario = Depends(_admin),
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    repo = AuditoriaRepo(session)
    return {
        "total": await repo.count(),
        "por_accion": await repo.count_by("accion"),
        "por_entidad": await repo.count_by("tipo_entidad"),
    }


@router.get("/{tipo_entidad}/{id_entidad}", response_model=list[AuditoriaOut])
async def list_auditorias_entidad(
    tipo_entidad: str,
    id_entidad: int,
    _: Usuario = Depends(_admin),
    session: AsyncSession = Depends(db_session),
) -> list[Auditoria]:
    return await AuditoriaRepo(session).list(tipo_entidad=tipo_entidad, id_entidad=id_entidad)
