"""
clinica_juridica.db.repositories.usuarios

Repository for `Usuario` entities.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import Consultante, Rol, Tramite, TramiteEstado, Usuario


class UsuarioRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> Usuario:
        usuario = Usuario(**fields)
        self._session.add(usuario)
        await self._session.flush()
        return usuario

    async def get(self, id_usuario: int) -> Usuario | None:
        stmt = (
            select(Usuario)
            .where(Usuario.id_usuario == id_usuario)
            .execution_options(populate_existing=True)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_ci(self, ci: str) -> Usuario | None:
        stmt = select(Usuario).where(Usuario.ci == ci)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list(
        self,
        *,
        rol: Rol | None = None,
        activo: bool | None = None,
        search: str | None = None,
    ) -> list[Usuario]:
        stmt = select(Usuario).order_by(desc(Usuario.created_at), desc(Usuario.id_usuario))
        if rol is not None:
            stmt = stmt.where(Usuario.rol == rol)
        if activo is not None:
            stmt = stmt.where(Usuario.activo == activo)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Usuario.nombre.ilike(pattern),
                    Usuario.ci.ilike(pattern),
                    Usuario.correo.ilike(pattern),
                )
            )
        return list((await self._session.execute(stmt)).scalars().all())

    async def tramites_activos(self, id_usuario: int) -> list[Tramite]:
        # Open cases where this user is the client.
        stmt = (
            select(Tramite)
            .join(Consultante, Tramite.id_consultante == Consultante.id_consultante)
            .where(
                Consultante.id_usuario == id_usuario,
                Tramite.estado.in_([TramiteEstado.en_tramite, TramiteEstado.pendiente]),
            )
        )
        return list((await self._session.execute(stmt)).scalars().all())
