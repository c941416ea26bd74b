"""
clinica_juridica.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `Principal`.
- Load the acting `Usuario` row for handlers that check role/access level against the DB.
- Enforce coarse role gates via a reusable dependency factory.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import (
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
)

from clinica_juridica.api.deps import db_session, settings_dep
from clinica_juridica.auth.jwt import JwtValidationError, access_config, decode_and_validate
from clinica_juridica.auth.models import Principal
from clinica_juridica.db.models import Usuario
from clinica_juridica.db.repositories.usuarios import UsuarioRepo
from clinica_juridica.settings import Settings

_bearer = HTTPBearer(auto_error=False)


def get_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(settings_dep),
) -> Principal:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Token de acceso requerido")

    try:
        payload = decode_and_validate(
            cfg=access_config(settings), token=creds.credentials, token_type="access"
        )
    except JwtValidationError as e:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Token inválido o expirado") from e

    subject = str(payload.get("sub", ""))
    rol = payload.get("rol")
    if not subject or not isinstance(rol, str):
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Token inválido")

    id_usuario: int | None = None
    if "id" in payload:
        try:
            id_usuario = int(payload["id"])
        except (TypeError, ValueError) as e:
            raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Token inválido") from e

    nivel = payload.get("nivel_acceso")
    return Principal(
        subject=subject,
        rol=rol,
        id_usuario=id_usuario,
        ci=payload.get("ci"),
        nivel_acceso=int(nivel) if isinstance(nivel, int) else None,
    )


async def get_current_usuario(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> Usuario:
    # Role/level checks use the stored row, not the (possibly stale) token claims.
    if principal.id_usuario is None:
        raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Se requiere un usuario")
    usuario = await UsuarioRepo(session).get(principal.id_usuario)
    if usuario is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Usuario no encontrado")
    if not usuario.activo:
        raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Usuario inactivo")
    return usuario


async def get_optional_usuario(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> Usuario | None:
    # Service identities act without a Usuario row.
    if principal.is_service:
        return None
    return await get_current_usuario(principal=principal, session=session)


def require_roles(*allowed: str):
    allowed_set = frozenset(allowed)

    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.rol not in allowed_set:
            raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Permisos insuficientes")
        return principal

    return _dep


# --- Module Notes -----------------------------------------------------------
# Fine-grained checks (nivel_acceso, group membership) live in the service layer next to
# the lifecycle checks they guard.
