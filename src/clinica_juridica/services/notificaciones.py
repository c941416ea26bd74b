"""
clinica_juridica.services.notificaciones

In-app notifications.

Responsibilities:
- Create a notification for one user or for every member of a group.
- Never let a notification failure abort the operation that triggered it.
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import TipoNotificacion
from clinica_juridica.db.repositories.grupos import GrupoRepo
from clinica_juridica.db.repositories.notificaciones import NotificacionRepo
from clinica_juridica.observability.logging import get_logger

log = get_logger(__name__)


class NotificacionService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repo = NotificacionRepo(session)
        self._grupos = GrupoRepo(session)

    async def crear(
        self,
        *,
        id_usuario: int,
        id_usuario_emisor: int | None,
        titulo: str,
        mensaje: str,
        tipo: TipoNotificacion = TipoNotificacion.info,
        tipo_entidad: str | None = None,
        id_entidad: int | None = None,
        id_tramite: int | None = None,
    ) -> bool:
        # Savepoint: a failed insert rolls back only the notification.
        try:
            async with self._session.begin_nested():
                await self._repo.add(
                    id_usuario=id_usuario,
                    id_usuario_emisor=id_usuario_emisor,
                    titulo=titulo,
                    mensaje=mensaje,
                    tipo=tipo,
                    tipo_entidad=tipo_entidad,
                    id_entidad=id_entidad,
                    id_tramite=id_tramite,
                )
        except SQLAlchemyError:
            log.warning(
                "notificacion_failed",
                id_usuario=id_usuario,
                tipo_entidad=tipo_entidad,
                id_entidad=id_entidad,
                exc_info=True,
            )
            return False
        return True

    async def crear_para_grupo(
        self,
        id_grupo: int,
        *,
        id_usuario_emisor: int | None,
        titulo: str,
        mensaje: str,
        tipo: TipoNotificacion = TipoNotificacion.info,
        tipo_entidad: str | None = None,
        id_entidad: int | None = None,
        id_tramite: int | None = None,
    ) -> int:
        sent = 0
        for id_usuario in await self._grupos.member_ids(id_grupo):
            ok = await self.crear(
                id_usuario=id_usuario,
                id_usuario_emisor=id_usuario_emisor,
                titulo=titulo,
                mensaje=mensaje,
                tipo=tipo,
                tipo_entidad=tipo_entidad,
                id_entidad=id_entidad,
                id_tramite=id_tramite,
            )
            sent += int(ok)
        log.info("notificaciones_grupo", id_grupo=id_grupo, enviadas=sent)
        return sent
