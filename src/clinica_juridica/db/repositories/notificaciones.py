from __future__ import annotations

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import Notificacion, TipoNotificacion


class NotificacionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
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
    ) -> Notificacion:
        notificacion = Notificacion(
            id_usuario=id_usuario,
            id_usuario_emisor=id_usuario_emisor,
            titulo=titulo,
            mensaje=mensaje,
            tipo=tipo,
            leida=False,
            tipo_entidad=tipo_entidad,
            id_entidad=id_entidad,
            id_tramite=id_tramite,
        )
        self._session.add(notificacion)
        await self._session.flush()
        return notificacion

    async def get(self, id_notificacion: int) -> Notificacion | None:
        return await self._session.get(Notificacion, id_notificacion)

    async def list_for_usuario(
        self, id_usuario: int, *, solo_no_leidas: bool = False, limit: int = 100
    ) -> list[Notificacion]:
        stmt = select(Notificacion).where(Notificacion.id_usuario == id_usuario)
        if solo_no_leidas:
            stmt = stmt.where(Notificacion.leida.is_(False))
        stmt = stmt.order_by(desc(Notificacion.created_at), desc(Notificacion.id_notificacion))
        return list((await self._session.execute(stmt.limit(limit))).scalars().all())
