from __future__ import annotations

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import Consultante


class ConsultanteRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self, *, id_usuario: int, est_civil: str | None, nro_padron: int | None
    ) -> Consultante:
        consultante = Consultante(id_usuario=id_usuario, est_civil=est_civil, nro_padron=nro_padron)
        self._session.add(consultante)
        await self._session.flush()
        return consultante

    async def get(self, id_consultante: int) -> Consultante | None:
        return await self._session.get(Consultante, id_consultante)

    async def list(self) -> list[Consultante]:
        stmt = select(Consultante).order_by(desc(Consultante.created_at))
        return list((await self._session.execute(stmt)).scalars().all())
