"""
tests.test_auditorias

Audit trail: what gets recorded, who can read it, aggregation.
"""

from __future__ import annotations

import httpx
import pytest
from conftest import Seed, crear_ficha

H = dict[str, dict[str, str]]


@pytest.mark.asyncio
async def test_auditorias_are_admin_only(client: httpx.AsyncClient, headers: H) -> None:
    for path in ("/api/auditorias", "/api/auditorias/stats", "/api/usuarios/auditoria"):
        r = await client.get(path, headers=headers["docente"])
        assert r.status_code == 403, path


@pytest.mark.asyncio
async def test_ficha_actions_are_audited_with_request_metadata(
    client: httpx.AsyncClient, headers: H, seed: Seed
) -> None:
    ficha = await crear_ficha(client, headers["admin"], seed)
    await client.get(
        f"/api/fichas/{ficha['id_ficha']}", headers={**headers["docente"], "user-agent": "pytest-ua"}
    )

    r = await client.get(f"/api/auditorias/ficha/{ficha['id_ficha']}", headers=headers["admin"])
    entries = r.json()
    assert [e["accion"] for e in entries] == ["consultar", "crear"]
    consultar, crear = entries
    assert consultar["user_agent"] == "pytest-ua"
    assert consultar["usuario"]["id_usuario"] == seed.docente_id
    assert crear["detalles"].startswith(f"Ficha creada: {ficha['numero_consulta']}")


@pytest.mark.asyncio
async def test_list_filters_record_applied_filters(
    client: httpx.AsyncClient, headers: H, seed: Seed
) -> None:
    await client.get("/api/fichas", params={"estado": "standby", "search": "x"}, headers=headers["docente"])

    r = await client.get(
        "/api/auditorias",
        params={"tipo_entidad": "ficha", "accion": "listar", "id_usuario": seed.docente_id},
        headers=headers["admin"],
    )
    (entry,) = r.json()
    assert entry["detalles"] == "Listado de fichas consultado. Filtros: estado: standby, búsqueda: x"


@pytest.mark.asyncio
async def test_stats_counts_by_action_and_entity(
    client: httpx.AsyncClient, headers: H, seed: Seed
) -> None:
    await crear_ficha(client, headers["admin"], seed)

    r = await client.get("/api/auditorias/stats", headers=headers["admin"])
    stats = r.json()
    # six logins from the headers fixture + one ficha creation
    assert stats["por_accion"]["login"] == 6
    assert stats["por_accion"]["crear"] == 1
    assert stats["por_entidad"]["ficha"] == 1
    assert stats["total"] == sum(stats["por_accion"].values())
