from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import Grupo, RolEnGrupo, UsuarioGrupo


class GrupoRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, nombre: str) -> Grupo:
        grupo = Grupo(nombre=nombre, activo=True)
        self._session.add(grupo)
        await self._session.flush()
        return grupo

    async def get(self, id_grupo: int) -> Grupo | None:
        stmt = (
            select(Grupo)
            .where(Grupo.id_grupo == id_grupo)
            .execution_options(populate_existing=True)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list(self, *, activo: bool | None = None) -> list[Grupo]:
        stmt = select(Grupo).order_by(Grupo.nombre)
        if activo is not None:
            stmt = stmt.where(Grupo.activo == activo)
        return list((await self._session.execute(stmt)).scalars().all())

    async def add_member(
        self, *, id_grupo: int, id_usuario: int, rol_en_grupo: RolEnGrupo
    ) -> UsuarioGrupo:
        member = UsuarioGrupo(id_grupo=id_grupo, id_usuario=id_usuario, rol_en_grupo=rol_en_grupo)
        self._session.add(member)
        await self._session.flush()
        return member

    async def is_member(
        self, *, id_grupo: int, id_usuario: int, rol_en_grupo: RolEnGrupo | None = None
    ) -> bool:
        stmt = select(UsuarioGrupo.id_usuario_grupo).where(
            UsuarioGrupo.id_grupo == id_grupo,
            UsuarioGrupo.id_usuario == id_usuario,
        )
        if rol_en_grupo is not None:
            stmt = stmt.where(UsuarioGrupo.rol_en_grupo == rol_en_grupo)
        return (await self._session.execute(stmt.limit(1))).first() is not None

    async def member_ids(self, id_grupo: int) -> list[int]:
        stmt = select(UsuarioGrupo.id_usuario).where(UsuarioGrupo.id_grupo == id_grupo)
        return list((await self._session.execute(stmt)).scalars().all())
