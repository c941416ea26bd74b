"""
clinica_juridica.db.repositories.auditoria

Repository for `Auditoria` entities.

Responsibilities:
- Append audit rows (user and service actions).
- Query the audit trail by entity, action or user; aggregate counters.
"""

from __future__ import annotations

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import Auditoria


class AuditoriaRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        id_usuario: int | None,
        tipo_entidad: str,
        id_entidad: int | None,
        accion: str,
        detalles: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Auditoria:
        # Audit rows are append-only in normal operation.
        row = Auditoria(
            id_usuario=id_usuario,
            tipo_entidad=tipo_entidad,
            id_entidad=id_entidad,
            accion=accion,
            detalles=detalles,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list(
        self,
        *,
        tipo_entidad: str | None = None,
        id_entidad: int | None = None,
        accion: str | None = None,
        id_usuario: int | None = None,
        limit: int = 100,
    ) -> list[Auditoria]:
        # Newest-first for UI consumption.
        stmt = select(Auditoria)
        if tipo_entidad is not None:
            stmt = stmt.where(Auditoria.tipo_entidad == tipo_entidad)
        if id_entidad is not None:
            stmt = stmt.where(Auditoria.id_entidad == id_entidad)
        if accion is not None:
            stmt = stmt.where(Auditoria.accion == accion)
        if id_usuario is not None:
            stmt = stmt.where(Auditoria.id_usuario == id_usuario)
        stmt = stmt.order_by(desc(Auditoria.created_at), desc(Auditoria.id_auditoria)).limit(limit)
        return list((await self._session.execute(stmt)).scalars().all())

    async def count(self) -> int:
        return int((await self._session.execute(select(func.count(Auditoria.id_auditoria)))).scalar_one())

    async def count_by(self, column_name: str) -> dict[str, int]:
        column = getattr(Auditoria, column_name)
        stmt = select(column, func.count(Auditoria.id_auditoria)).group_by(column)
        return {str(key): int(count) for key, count in (await self._session.execute(stmt)).all()}


# --- Module Notes -----------------------------------------------------------
# `count_by` is only called with trusted column names ("accion", "tipo_entidad").
