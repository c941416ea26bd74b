"""
clinica_juridica.db.repositories.tramites

Repository for `Tramite` entities.

Responsibilities:
- Create/fetch/update case folders.
- Aggregate counters per status for the dashboard.
- Year-scoped scan of existing folder numbers for sequential numbering.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import Tramite, TramiteEstado


class TramiteRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> Tramite:
        tramite = Tramite(**fields)
        self._session.add(tramite)
        await self._session.flush()
        return tramite

    async def get(self, id_tramite: int) -> Tramite | None:
        stmt = (
            select(Tramite)
            .where(Tramite.id_tramite == id_tramite)
            .execution_options(populate_existing=True)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list(
        self,
        *,
        estado: TramiteEstado | None = None,
        id_grupo: int | None = None,
        id_consultante: int | None = None,
    ) -> list[Tramite]:
        stmt = select(Tramite).order_by(desc(Tramite.fecha_inicio), desc(Tramite.id_tramite))
        if estado is not None:
            stmt = stmt.where(Tramite.estado == estado)
        if id_grupo is not None:
            stmt = stmt.where(Tramite.id_grupo == id_grupo)
        if id_consultante is not None:
            stmt = stmt.where(Tramite.id_consultante == id_consultante)
        return list((await self._session.execute(stmt)).scalars().all())

    async def count_by_estado(self) -> dict[TramiteEstado, int]:
        stmt = select(Tramite.estado, func.count(Tramite.id_tramite)).group_by(Tramite.estado)
        rows = (await self._session.execute(stmt)).all()
        return {TramiteEstado(estado): int(count) for estado, count in rows}

    async def carpetas_del_anio(self, yy: str) -> list[str]:
        stmt = select(Tramite.num_carpeta).where(Tramite.num_carpeta.contains(f"/{yy}"))
        return list((await self._session.execute(stmt)).scalars().all())

    async def num_carpeta_exists(self, num_carpeta: str) -> bool:
        stmt = select(Tramite.id_tramite).where(Tramite.num_carpeta == num_carpeta).limit(1)
        return (await self._session.execute(stmt)).first() is not None
