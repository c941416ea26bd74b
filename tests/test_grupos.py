"""
tests.test_grupos

Groups, client registration and the notification inbox.
"""

from __future__ import annotations

import httpx
import pytest
from conftest import Seed, crear_ficha

H = dict[str, dict[str, str]]


@pytest.mark.asyncio
async def test_create_group_and_enrol_members(
    client: httpx.AsyncClient, headers: H, seed: Seed
) -> None:
    r = await client.post("/api/grupos", json={"nombre": "Grupo B"}, headers=headers["docente"])
    assert r.status_code == 403

    r = await client.post("/api/grupos", json={"nombre": "  "}, headers=headers["admin"])
    assert r.status_code == 400

    r = await client.post("/api/grupos", json={"nombre": "Grupo B"}, headers=headers["admin"])
    assert r.status_code == 201
    grupo = r.json()
    assert grupo["activo"] is True
    assert grupo["miembros_grupo"] == []

    url = f"/api/grupos/{grupo['id_grupo']}/miembros"
    r = await client.post(url, json={"id_usuario": seed.estudiante_externo_id}, headers=headers["admin"])
    assert r.status_code == 201
    (miembro,) = r.json()["miembros_grupo"]
    assert miembro["rol_en_grupo"] == "estudiante"
    assert miembro["usuario"]["ci"] == "3001"

    r = await client.post(url, json={"id_usuario": seed.estudiante_externo_id}, headers=headers["admin"])
    assert r.status_code == 409

    r = await client.post(url, json={"id_usuario": 999}, headers=headers["admin"])
    assert r.status_code == 404

    r = await client.post("/api/grupos", json={"nombre": "Grupo A"}, headers=headers["admin"])
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_list_groups(client: httpx.AsyncClient, headers: H, seed: Seed) -> None:
    r = await client.get("/api/grupos", headers=headers["estudiante"])
    assert [g["nombre"] for g in r.json()] == ["Grupo A", "Grupo Cerrado"]

    r = await client.get("/api/grupos", params={"activo": "true"}, headers=headers["estudiante"])
    (grupo,) = r.json()
    assert {m["rol_en_grupo"] for m in grupo["miembros_grupo"]} == {"estudiante", "docente"}


@pytest.mark.asyncio
async def test_register_consultante(client: httpx.AsyncClient, headers: H, seed: Seed) -> None:
    r = await client.post(
        "/api/usuarios",
        json={
            "nombre": "Mario Molina",
            "ci": "4001",
            "domicilio": "Calle 2",
            "telefono": "72222222",
            "correo": "mario@clinica.test",
            "password": "clave-segura",
            "rol": "consultante",
        },
        headers=headers["admin"],
    )
    id_usuario = r.json()["id_usuario"]

    r = await client.post(
        "/api/consultantes",
        json={"id_usuario": seed.estudiante_id, "est_civil": "casado"},
        headers=headers["admin"],
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/consultantes", json={"id_usuario": id_usuario}, headers=headers["docente"]
    )
    assert r.status_code == 403

    r = await client.post(
        "/api/consultantes",
        json={"id_usuario": id_usuario, "est_civil": "casado", "nro_padron": 77},
        headers=headers["admin"],
    )
    assert r.status_code == 201
    assert r.json()["usuario"]["nombre"] == "Mario Molina"

    r = await client.get("/api/consultantes", headers=headers["docente"])
    assert {c["usuario"]["ci"] for c in r.json()} == {"4000", "4001"}


@pytest.mark.asyncio
async def test_notification_inbox(client: httpx.AsyncClient, headers: H, seed: Seed) -> None:
    await crear_ficha(client, headers["admin"], seed)

    r = await client.get("/api/notificaciones", headers=headers["docente"])
    (aviso,) = r.json()
    assert aviso["leida"] is False
    assert aviso["id_usuario_emisor"] == seed.admin_id

    # Someone else's notification looks missing.
    r = await client.post(f"/api/notificaciones/{aviso['id_notificacion']}/leer", headers=headers["estudiante"])
    assert r.status_code == 404

    r = await client.post(f"/api/notificaciones/{aviso['id_notificacion']}/leer", headers=headers["docente"])
    assert r.status_code == 200
    assert r.json()["leida"] is True

    r = await client.get("/api/notificaciones", params={"solo_no_leidas": "true"}, headers=headers["docente"])
    assert r.json() == []
