"""
clinica_juridica.db.init_db

DB initialization helpers (dev/test convenience).

Responsibilities:
- Create tables for local development and tests.
- Seed a first system administrator so a fresh database can be logged into.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from clinica_juridica.auth.passwords import hash_password
from clinica_juridica.db.base import Base
from clinica_juridica.db.models import NivelAcceso, Rol, Usuario
from clinica_juridica.observability.logging import get_logger

log = get_logger(__name__)


async def init_db(engine: AsyncEngine) -> None:
    """
    Dev/test bootstrap: create tables if they don't exist.
    Production relies on Alembic migrations.
    """

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_admin(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    ci: str,
    password: str,
    nombre: str = "Administrador del Sistema",
    correo: str = "admin@clinica.local",
) -> None:
    async with session_factory() as session:
        existing = (
            await session.execute(select(Usuario.id_usuario).where(Usuario.ci == ci))
        ).scalar_one_or_none()
        if existing is not None:
            return
        session.add(
            Usuario(
                nombre=nombre,
                ci=ci,
                domicilio="-",
                telefono="-",
                correo=correo,
                password=hash_password(password),
                rol=Rol.administrador,
                nivel_acceso=NivelAcceso.sistema,
                activo=True,
            )
        )
        await session.commit()
        log.info("admin_seeded", ci=ci)


# --- Module Notes -----------------------------------------------------------
# Neither helper is used for prod; deployments run Alembic and create users via the API.
