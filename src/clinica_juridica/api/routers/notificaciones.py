"""
clinica_juridica.api.routers.notificaciones

In-app notification inbox for the current user.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.api.deps import db_session
from clinica_juridica.api.schemas import NotificacionOut
from clinica_juridica.auth.deps import get_current_usuario
from clinica_juridica.db.models import Notificacion, Usuario
from clinica_juridica.db.repositories.notificaciones import NotificacionRepo
from clinica_juridica.services.errors import NoEncontrado

router = APIRouter(prefix="/api/notificaciones", tags=["notificaciones"])


@router.get("", response_model=list[NotificacionOut])
async def list_notificaciones(
    solo_no_leidas: bool = False,
    limit: int = Query(default=100, ge=1, le=500),
    usuario: Usuario = Depends(get_current_usuario),
    session: AsyncSession = Depends(db_session),
) -> list[Notificacion]:
    return await NotificacionRepo(session).list_for_usuario(
        usuario.id_usuario, solo_no_leidas=solo_no_leidas, limit=limit
    )


@router.post("/{id_notificacion}/leer", response_model=NotificacionOut)
async def marcar_leida(
    id_notificacion: int,
    usuario: Usuario = Depends(get_current_usuario),
    session: AsyncSession = Depends(db_session),
) -> Notificacion:
    notificacion = await NotificacionRepo(session).get(id_notificacion)
    # Other users' notifications are indistinguishable from missing ones.
    if notificacion is None or notificacion.id_usuario != usuario.id_usuario:
        raise NoEncontrado("Notificación no encontrada")
    notificacion.leida = True
    await session.commit()
    return notificacion
