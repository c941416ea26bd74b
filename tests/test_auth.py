"""
tests.test_auth

Login / refresh / logout / me flows and token enforcement.
"""

from __future__ import annotations

from datetime import timedelta

import httpx
import pytest
from conftest import PASSWORD, Seed, login
from fastapi import FastAPI

from clinica_juridica.auth.jwt import access_config, issue_token, refresh_config
from clinica_juridica.settings import Settings


@pytest.mark.asyncio
async def test_login_returns_tokens_and_profile(client: httpx.AsyncClient, seed: Seed) -> None:
    r = await client.post("/api/auth/login", json={"ci": "3000", "password": PASSWORD})
    assert r.status_code == 200
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"] and body["refresh_token"]
    assert body["usuario"]["ci"] == "3000"
    assert "password" not in body["usuario"]
    assert body["usuario"]["grupos_participa"][0]["grupo"]["nombre"] == "Grupo A"


@pytest.mark.asyncio
async def test_login_requires_both_fields(client: httpx.AsyncClient, seed: Seed) -> None:
    r = await client.post("/api/auth/login", json={"ci": "3000"})
    assert r.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("ci,password", [("3000", "incorrecta"), ("9999", PASSWORD)])
async def test_login_rejects_bad_credentials(
    client: httpx.AsyncClient, seed: Seed, ci: str, password: str
) -> None:
    r = await client.post("/api/auth/login", json={"ci": ci, "password": password})
    assert r.status_code == 401
    assert r.json()["detail"] == "Credenciales inválidas"


@pytest.mark.asyncio
async def test_login_rejects_inactive_user(
    client: httpx.AsyncClient, headers: dict[str, dict[str, str]], seed: Seed
) -> None:
    r = await client.post(
        f"/api/usuarios/{seed.estudiante_externo_id}/desactivar", headers=headers["admin"]
    )
    assert r.status_code == 200

    r = await client.post("/api/auth/login", json={"ci": "3001", "password": PASSWORD})
    assert r.status_code == 403

    # Existing access tokens stop working too: the row is re-checked per request.
    r = await client.get("/api/auth/me", headers=headers["externo"])
    assert r.status_code == 403
    assert r.json()["detail"] == "Usuario inactivo"


@pytest.mark.asyncio
async def test_me_requires_token(client: httpx.AsyncClient, seed: Seed) -> None:
    r = await client.get("/api/auth/me")
    assert r.status_code == 401

    r = await client.get("/api/auth/me", headers={"Authorization": "Bearer basura"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_returns_current_user(
    client: httpx.AsyncClient, headers: dict[str, dict[str, str]]
) -> None:
    r = await client.get("/api/auth/me", headers=headers["docente"])
    assert r.status_code == 200
    assert r.json()["rol"] == "docente"


@pytest.mark.asyncio
async def test_refresh_and_logout(client: httpx.AsyncClient, seed: Seed) -> None:
    r = await client.post("/api/auth/login", json={"ci": "2000", "password": PASSWORD})
    refresh_token = r.json()["refresh_token"]

    r = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert r.status_code == 200
    new_access = r.json()["access_token"]
    r = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {new_access}"})
    assert r.status_code == 200

    r = await client.post("/api/auth/logout", json={"refresh_token": refresh_token})
    assert r.status_code == 200

    r = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_refresh_without_token_is_401(client: httpx.AsyncClient, seed: Seed) -> None:
    r = await client.post("/api/auth/refresh", json={})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_refresh_with_unknown_token_is_403(
    client: httpx.AsyncClient, settings: Settings, seed: Seed
) -> None:
    forged = issue_token(
        cfg=refresh_config(settings),
        subject=str(seed.docente_id),
        token_type="refresh",
        ttl=timedelta(days=1),
    )
    r = await client.post("/api/auth/refresh", json={"refresh_token": forged})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_expired_refresh_token_is_rejected_and_revoked(
    app: FastAPI, client: httpx.AsyncClient, settings: Settings, seed: Seed
) -> None:
    expired = issue_token(
        cfg=refresh_config(settings),
        subject=str(seed.docente_id),
        token_type="refresh",
        ttl=timedelta(seconds=-10),
        claims={"id": seed.docente_id},
    )
    await app.state.refresh_tokens.add(expired)

    r = await client.post("/api/auth/refresh", json={"refresh_token": expired})
    assert r.status_code == 403
    assert r.json()["detail"] == "Refresh token expirado"

    r = await client.post("/api/auth/refresh", json={"refresh_token": expired})
    assert r.status_code == 403
    assert r.json()["detail"] == "Refresh token inválido"
    assert not await app.state.refresh_tokens.contains(expired)


@pytest.mark.asyncio
async def test_inactive_user_is_reported_before_password_check(
    client: httpx.AsyncClient, headers: dict[str, dict[str, str]], seed: Seed
) -> None:
    await client.post(
        f"/api/usuarios/{seed.estudiante_externo_id}/desactivar", headers=headers["admin"]
    )

    r = await client.post("/api/auth/login", json={"ci": "3001", "password": "incorrecta"})
    assert r.status_code == 403
    assert r.json()["detail"] == "Usuario inactivo"


@pytest.mark.asyncio
async def test_expired_access_token_is_rejected(
    client: httpx.AsyncClient, settings: Settings, seed: Seed
) -> None:
    token = issue_token(
        cfg=access_config(settings),
        subject=str(seed.docente_id),
        token_type="access",
        ttl=timedelta(seconds=-10),
        claims={"id": seed.docente_id, "rol": "docente"},
    )
    r = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Token inválido o expirado"


@pytest.mark.asyncio
async def test_login_is_audited(client: httpx.AsyncClient, seed: Seed) -> None:
    admin = await login(client, "1000")
    r = await client.get("/api/auditorias", params={"tipo_entidad": "auth"}, headers=admin)
    assert r.status_code == 200
    assert any(a["accion"] == "login" and a["id_usuario"] == seed.admin_id for a in r.json())
