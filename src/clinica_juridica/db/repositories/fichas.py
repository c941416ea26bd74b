"""
clinica_juridica.db.repositories.fichas

Repository for `Ficha` entities.

Responsibilities:
- CRUD for intake records.
- Filtered/text search listing used by the fichas screen.
- Year-scoped scan of existing consulta numbers for sequential numbering.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import asc, desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from clinica_juridica.db.models import Consultante, Ficha, FichaEstado, Grupo, Usuario


class FichaRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> Ficha:
        ficha = Ficha(**fields)
        self._session.add(ficha)
        await self._session.flush()
        return ficha

    async def get(self, id_ficha: int) -> Ficha | None:
        stmt = (
            select(Ficha)
            .where(Ficha.id_ficha == id_ficha)
            .execution_options(populate_existing=True)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def delete(self, ficha: Ficha) -> None:
        await self._session.delete(ficha)
        await self._session.flush()

    async def list(
        self,
        *,
        estado: FichaEstado | None = None,
        id_docente: int | None = None,
        id_consultante: int | None = None,
        search_terms: list[str] | None = None,
    ) -> list[Ficha]:
        stmt = select(Ficha).order_by(desc(Ficha.created_at), desc(Ficha.id_ficha))
        if estado is not None:
            stmt = stmt.where(Ficha.estado == estado)
        if id_docente is not None:
            stmt = stmt.where(Ficha.id_docente == id_docente)
        if id_consultante is not None:
            stmt = stmt.where(Ficha.id_consultante == id_consultante)

        if search_terms:
            cons_usuario = aliased(Usuario)
            docente = aliased(Usuario)
            stmt = (
                stmt.join(Consultante, Ficha.id_consultante == Consultante.id_consultante)
                .join(cons_usuario, Consultante.id_usuario == cons_usuario.id_usuario)
                .join(docente, Ficha.id_docente == docente.id_usuario)
                .outerjoin(Grupo, Ficha.id_grupo == Grupo.id_grupo)
            )
            clauses = []
            for term in dict.fromkeys(search_terms):
                pattern = f"%{term}%"
                clauses += [
                    Ficha.numero_consulta.ilike(pattern),
                    Ficha.tema_consulta.ilike(pattern),
                    Ficha.observaciones.ilike(pattern),
                    Ficha.hora_cita.ilike(pattern),
                    cons_usuario.nombre.ilike(pattern),
                    cons_usuario.ci.ilike(pattern),
                    docente.nombre.ilike(pattern),
                    docente.ci.ilike(pattern),
                    Grupo.nombre.ilike(pattern),
                ]
            stmt = stmt.where(or_(*clauses))

        return list((await self._session.execute(stmt)).scalars().unique().all())

    async def list_standby(self) -> list[Ficha]:
        stmt = (
            select(Ficha)
            .where(Ficha.estado == FichaEstado.standby)
            .order_by(asc(Ficha.fecha_cita), asc(Ficha.id_ficha))
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def numeros_consulta_del_anio(self, year: int) -> list[str]:
        stmt = select(Ficha.numero_consulta).where(Ficha.numero_consulta.contains(f"/{year}"))
        return list((await self._session.execute(stmt)).scalars().all())

    async def numero_consulta_exists(self, numero_consulta: str) -> bool:
        stmt = select(Ficha.id_ficha).where(Ficha.numero_consulta == numero_consulta).limit(1)
        return (await self._session.execute(stmt)).first() is not None


# --- Module Notes -----------------------------------------------------------
# Search terms arrive already expanded (raw + accent-stripped) from the service layer.
