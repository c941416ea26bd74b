"""
tests.conftest

Shared fixtures: an isolated app per test (SQLite file DB under tmp_path), an in-process
HTTP client and a seeded clínica (admin, docente, estudiante, consultante, grupo).
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from clinica_juridica.api.app import create_app
from clinica_juridica.auth.passwords import hash_password
from clinica_juridica.db.models import (
    Consultante,
    Grupo,
    NivelAcceso,
    Rol,
    RolEnGrupo,
    Usuario,
    UsuarioGrupo,
)
from clinica_juridica.settings import Settings

PASSWORD = "secreto123"


@dataclass
class Seed:
    admin_id: int
    admin_sistema_id: int
    docente_id: int
    estudiante_id: int
    estudiante_externo_id: int
    consultante_usuario_id: int
    consultante_id: int
    grupo_id: int
    grupo_inactivo_id: int


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        env="test",
        log_level="WARNING",
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        workflow_enabled=False,
        numbering_retry_delay_ms=0,
    )


@pytest_asyncio.fixture
async def app_factory() -> AsyncIterator[Callable[..., object]]:
    """
    Builds apps (backend by default) and runs their lifespan; everything started is shut
    down at teardown.
    """
    contexts = []

    async def _make(settings: Settings, factory=create_app, **kwargs) -> FastAPI:
        app = factory(settings=settings, **kwargs)
        ctx = app.router.lifespan_context(app)
        await ctx.__aenter__()
        contexts.append(ctx)
        return app

    yield _make
    for ctx in reversed(contexts):
        await ctx.__aexit__(None, None, None)


@pytest_asyncio.fixture
async def app(app_factory, settings: Settings) -> FastAPI:
    return await app_factory(settings)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def seed_clinica(app: FastAPI) -> Seed:
    def usuario(ci: str, nombre: str, rol: Rol, **extra) -> Usuario:
        return Usuario(
            nombre=nombre,
            ci=ci,
            domicilio="Av. Siempre Viva 742",
            telefono="70000000",
            correo=f"{ci}@clinica.test",
            password=hash_password(PASSWORD),
            rol=rol,
            activo=True,
            **extra,
        )

    async with app.state.sessionmaker() as session:
        admin = usuario("1000", "Ana Administrativa", Rol.administrador, nivel_acceso=NivelAcceso.administrativo)
        admin_sistema = usuario("1001", "Sergio Sistema", Rol.administrador, nivel_acceso=NivelAcceso.sistema)
        docente = usuario("2000", "Diego Docente", Rol.docente)
        estudiante = usuario("3000", "Elena Estudiante", Rol.estudiante, semestre="8")
        externo = usuario("3001", "Esteban Externo", Rol.estudiante, semestre="9")
        cliente = usuario("4000", "Carla Pérez", Rol.consultante)
        grupo = Grupo(nombre="Grupo A", activo=True)
        inactivo = Grupo(nombre="Grupo Cerrado", activo=False)
        session.add_all([admin, admin_sistema, docente, estudiante, externo, cliente, grupo, inactivo])
        await session.flush()

        consultante = Consultante(id_usuario=cliente.id_usuario, est_civil="soltera", nro_padron=12)
        session.add(consultante)
        session.add_all(
            [
                UsuarioGrupo(
                    id_usuario=estudiante.id_usuario,
                    id_grupo=grupo.id_grupo,
                    rol_en_grupo=RolEnGrupo.estudiante,
                ),
                UsuarioGrupo(
                    id_usuario=docente.id_usuario,
                    id_grupo=grupo.id_grupo,
                    rol_en_grupo=RolEnGrupo.docente,
                ),
            ]
        )
        await session.commit()

        return Seed(
            admin_id=admin.id_usuario,
            admin_sistema_id=admin_sistema.id_usuario,
            docente_id=docente.id_usuario,
            estudiante_id=estudiante.id_usuario,
            estudiante_externo_id=externo.id_usuario,
            consultante_usuario_id=cliente.id_usuario,
            consultante_id=consultante.id_consultante,
            grupo_id=grupo.id_grupo,
            grupo_inactivo_id=inactivo.id_grupo,
        )


@pytest_asyncio.fixture
async def seed(app: FastAPI) -> Seed:
    return await seed_clinica(app)


async def login(client: httpx.AsyncClient, ci: str, password: str = PASSWORD) -> dict[str, str]:
    r = await client.post("/api/auth/login", json={"ci": ci, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest_asyncio.fixture
async def headers(client: httpx.AsyncClient, seed: Seed) -> dict[str, dict[str, str]]:
    return {
        "admin": await login(client, "1000"),
        "admin_sistema": await login(client, "1001"),
        "docente": await login(client, "2000"),
        "estudiante": await login(client, "3000"),
        "externo": await login(client, "3001"),
        "consultante": await login(client, "4000"),
    }


async def crear_ficha(
    client: httpx.AsyncClient, headers: dict[str, str], seed: Seed, **overrides
) -> dict:
    body = {
        "id_consultante": seed.consultante_id,
        "id_docente": seed.docente_id,
        "tema_consulta": "Asistencia familiar",
        "fecha_cita": "2025-03-10",
        "hora_cita": "09:30",
        **overrides,
    }
    r = await client.post("/api/fichas", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()
