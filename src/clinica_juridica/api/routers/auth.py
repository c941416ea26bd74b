"""
clinica_juridica.api.routers.auth

Authentication endpoints.

Responsibilities:
- Exchange CI + password for an access/refresh token pair.
- Refresh access tokens and revoke refresh tokens on logout.
- Return the current user profile with group memberships.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.api.deps import db_session, refresh_registry, request_meta, settings_dep
from clinica_juridica.api.schemas import UsuarioDetalleOut
from clinica_juridica.auth.deps import get_current_usuario
from clinica_juridica.auth.tokens import RefreshTokenRegistry
from clinica_juridica.db.models import Usuario
from clinica_juridica.services.auditoria import RequestMeta
from clinica_juridica.services.sesiones import SesionService
from clinica_juridica.settings import Settings

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    ci: str | None = None
    password: str | None = None


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    usuario: UsuarioDetalleOut


class RefreshRequest(BaseModel):
    refresh_token: str | None = None


class RefreshResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


def _service(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    registry: RefreshTokenRegistry = Depends(refresh_registry),
    meta: RequestMeta = Depends(request_meta),
) -> SesionService:
    return SesionService(session=session, settings=settings, registry=registry, meta=meta)


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, svc: SesionService = Depends(_service)) -> LoginResponse:
    pair = await svc.login(ci=body.ci, password=body.password)
    return LoginResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        usuario=UsuarioDetalleOut.model_validate(pair.usuario),
    )


@router.post("/logout")
async def logout(
    body: RefreshRequest | None = None, svc: SesionService = Depends(_service)
) -> dict[str, str]:
    await svc.logout(refresh_token=body.refresh_token if body else None)
    return {"message": "Sesión cerrada exitosamente"}


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(body: RefreshRequest, svc: SesionService = Depends(_service)) -> RefreshResponse:
    return RefreshResponse(access_token=await svc.refresh(refresh_token=body.refresh_token))


@router.get("/me", response_model=UsuarioDetalleOut)
async def me(usuario: Usuario = Depends(get_current_usuario)) -> Usuario:
    return usuario
