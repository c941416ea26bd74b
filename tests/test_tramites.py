"""
tests.test_tramites

Trámite endpoints as driven by staff and by the orchestrator's service identity.
"""

from __future__ import annotations

from datetime import date, timedelta

import httpx
import pytest
from conftest import Seed

from clinica_juridica.auth.jwt import access_config, issue_token
from clinica_juridica.auth.models import SERVICE_ROLE
from clinica_juridica.settings import Settings

H = dict[str, dict[str, str]]


@pytest.fixture
def sistema(settings: Settings) -> dict[str, str]:
    token = issue_token(
        cfg=access_config(settings),
        subject="orchestrator",
        token_type="access",
        ttl=timedelta(minutes=5),
        claims={"rol": SERVICE_ROLE},
    )
    return {"Authorization": f"Bearer {token}"}


async def _crear(client: httpx.AsyncClient, headers: dict[str, str], seed: Seed, **extra) -> dict:
    r = await client.post(
        "/api/tramites",
        json={"id_consultante": seed.consultante_id, "id_grupo": seed.grupo_id, **extra},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_service_identity_creates_tramite_with_allocated_carpeta(
    client: httpx.AsyncClient, sistema: dict[str, str], seed: Seed
) -> None:
    yy = str(date.today().year)[-2:]
    first = await _crear(client, sistema, seed, observaciones="Desde el proceso")
    second = await _crear(client, sistema, seed)

    assert first["num_carpeta"] == f"001/{yy}"
    assert second["num_carpeta"] == f"002/{yy}"
    assert first["estado"] == "en_tramite"
    assert first["grupo"]["nombre"] == "Grupo A"


@pytest.mark.asyncio
async def test_explicit_carpeta_is_kept_and_duplicates_conflict(
    client: httpx.AsyncClient, sistema: dict[str, str], seed: Seed
) -> None:
    tramite = await _crear(client, sistema, seed, num_carpeta="050/24")
    assert tramite["num_carpeta"] == "050/24"

    r = await client.post(
        "/api/tramites",
        json={"id_consultante": seed.consultante_id, "id_grupo": seed.grupo_id, "num_carpeta": "050/24"},
        headers=sistema,
    )
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_create_validation(
    client: httpx.AsyncClient, sistema: dict[str, str], headers: H, seed: Seed
) -> None:
    r = await client.post("/api/tramites", json={"id_grupo": seed.grupo_id}, headers=sistema)
    assert r.status_code == 400

    r = await client.post(
        "/api/tramites", json={"id_consultante": 999, "id_grupo": seed.grupo_id}, headers=sistema
    )
    assert r.status_code == 404

    r = await client.post(
        "/api/tramites",
        json={"id_consultante": seed.consultante_id, "id_grupo": seed.grupo_id},
        headers=headers["estudiante"],
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Permisos insuficientes"

    r = await client.post("/api/tramites", json={})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_update_estado_and_close(
    client: httpx.AsyncClient, sistema: dict[str, str], headers: H, seed: Seed
) -> None:
    tramite = await _crear(client, sistema, seed)
    url = f"/api/tramites/{tramite['id_tramite']}"

    r = await client.patch(url, json={"estado": "cerrado"}, headers=sistema)
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Estado inválido")

    r = await client.patch(url, json={"estado": "pendiente", "observaciones": "Falta documento"}, headers=sistema)
    assert r.status_code == 200
    assert r.json()["estado"] == "pendiente"
    assert r.json()["observaciones"] == "Falta documento"
    assert r.json()["fecha_cierre"] is None

    r = await client.patch(
        url, json={"estado": "finalizado", "motivo_cierre": "Sentencia favorable"}, headers=headers["docente"]
    )
    assert r.status_code == 200
    assert r.json()["estado"] == "finalizado"
    assert r.json()["fecha_cierre"] is not None
    # Observaciones untouched when not sent.
    assert r.json()["observaciones"] == "Falta documento"

    r = await client.patch("/api/tramites/999", json={"estado": "pendiente"}, headers=sistema)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_notificar_reaches_consultante_and_group(
    client: httpx.AsyncClient, sistema: dict[str, str], headers: H, seed: Seed
) -> None:
    tramite = await _crear(client, sistema, seed)
    r = await client.post(
        "/api/tramites/notificar",
        json={
            "id_tramite": tramite["id_tramite"],
            "tipo_notificacion": "estado_actualizado",
            "mensaje": "Audiencia fijada",
        },
        headers=sistema,
    )
    assert r.status_code == 200
    # consultante + estudiante + docente of Grupo A
    assert r.json()["enviadas"] == 3

    for who in ("consultante", "estudiante", "docente"):
        r = await client.get("/api/notificaciones", headers=headers[who])
        (aviso,) = [n for n in r.json() if n["id_tramite"] == tramite["id_tramite"]]
        assert aviso["mensaje"] == "Audiencia fijada"
        assert aviso["tipo"] == "info"
        assert aviso["id_usuario_emisor"] is None

    r = await client.post("/api/tramites/notificar", json={"id_tramite": 999, "mensaje": "x"}, headers=sistema)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_list_get_and_stats(
    client: httpx.AsyncClient, sistema: dict[str, str], headers: H, seed: Seed
) -> None:
    a = await _crear(client, sistema, seed)
    b = await _crear(client, sistema, seed)
    await client.patch(f"/api/tramites/{b['id_tramite']}", json={"estado": "desistido"}, headers=sistema)

    r = await client.get("/api/tramites", headers=headers["estudiante"])
    assert [t["id_tramite"] for t in r.json()] == [b["id_tramite"], a["id_tramite"]]

    r = await client.get("/api/tramites", params={"estado": "en_tramite"}, headers=headers["estudiante"])
    assert [t["id_tramite"] for t in r.json()] == [a["id_tramite"]]

    r = await client.get(f"/api/tramites/{a['id_tramite']}", headers=headers["estudiante"])
    assert r.status_code == 200
    assert r.json()["consultante"]["usuario"]["ci"] == "4000"

    r = await client.get("/api/tramites/stats", headers=headers["admin"])
    assert r.json() == {"total": 2, "pendientes": 0, "en_proceso": 1, "completados": 0, "cancelados": 1}


@pytest.mark.asyncio
async def test_hoja_ruta_permissions_and_order(
    client: httpx.AsyncClient, sistema: dict[str, str], headers: H, seed: Seed
) -> None:
    tramite = await _crear(client, sistema, seed)
    url = f"/api/tramites/{tramite['id_tramite']}/hoja-ruta"

    r = await client.post(
        url,
        json={"descripcion": "Presentación de demanda", "fecha_actuacion": "2025-01-05T10:00:00"},
        headers=headers["estudiante"],
    )
    assert r.status_code == 201
    assert r.json()["usuario"]["nombre"] == "Elena Estudiante"

    r = await client.post(
        url,
        json={"descripcion": "Audiencia preliminar", "fecha_actuacion": "2025-02-10T09:00:00"},
        headers=headers["docente"],
    )
    assert r.status_code == 201

    r = await client.post(url, json={"descripcion": "Intruso"}, headers=headers["externo"])
    assert r.status_code == 403

    r = await client.post(url, json={"descripcion": "   "}, headers=headers["admin"])
    assert r.status_code == 400

    r = await client.get(url, headers=headers["consultante"])
    assert [e["descripcion"] for e in r.json()] == ["Audiencia preliminar", "Presentación de demanda"]

    r = await client.get("/api/tramites/999/hoja-ruta", headers=headers["consultante"])
    assert r.status_code == 404
