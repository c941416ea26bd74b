from __future__ import annotations

from datetime import datetime

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import HojaRuta


class HojaRutaRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        id_tramite: int,
        id_usuario: int | None,
        descripcion: str,
        fecha_actuacion: datetime | None = None,
    ) -> HojaRuta:
        # Procedural log entries are append-only (no update/delete).
        entry = HojaRuta(id_tramite=id_tramite, id_usuario=id_usuario, descripcion=descripcion)
        if fecha_actuacion is not None:
            entry.fecha_actuacion = fecha_actuacion
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def list_for_tramite(self, id_tramite: int) -> list[HojaRuta]:
        stmt = (
            select(HojaRuta)
            .where(HojaRuta.id_tramite == id_tramite)
            .order_by(desc(HojaRuta.fecha_actuacion), desc(HojaRuta.id_hoja_ruta))
        )
        return list((await self._session.execute(stmt)).scalars().all())
