"""
clinica_juridica.services.sesiones

Login / refresh / logout flows.

Responsibilities:
- Verify credentials against the stored password hash.
- Mint access + refresh token pairs and track refresh tokens in the registry.
- Exchange a tracked refresh token for a fresh access token.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.auth.jwt import (
    JwtExpiredError,
    JwtValidationError,
    access_config,
    decode_and_validate,
    issue_token,
    refresh_config,
)
from clinica_juridica.auth.passwords import verify_password
from clinica_juridica.auth.tokens import RefreshTokenRegistry
from clinica_juridica.db.models import Usuario
from clinica_juridica.db.repositories.usuarios import UsuarioRepo
from clinica_juridica.observability.logging import get_logger
from clinica_juridica.services.auditoria import AuditoriaService, RequestMeta
from clinica_juridica.services.errors import DatosInvalidos, NoAutenticado, NoEncontrado, Prohibido
from clinica_juridica.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str
    usuario: Usuario


def emitir_access_token(settings: Settings, usuario: Usuario) -> str:
    return issue_token(
        cfg=access_config(settings),
        subject=str(usuario.id_usuario),
        token_type="access",
        ttl=timedelta(minutes=settings.access_token_ttl_minutes),
        claims={
            "id": usuario.id_usuario,
            "ci": usuario.ci,
            "rol": usuario.rol.value,
            "nivel_acceso": usuario.nivel_acceso,
        },
    )


class SesionService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        registry: RefreshTokenRegistry,
        meta: RequestMeta | None = None,
    ) -> None:
        self._session = session
        self._settings = settings
        self._registry = registry
        self._usuarios = UsuarioRepo(session)
        self._audit = AuditoriaService(session, meta)

    async def login(self, *, ci: str | None, password: str | None) -> TokenPair:
        if not ci or not password:
            raise DatosInvalidos("CI y contraseña son requeridos")

        usuario = await self._usuarios.get_by_ci(ci)
        if usuario is None:
            log.info("login_rechazado", ci=ci)
            raise NoAutenticado("Credenciales inválidas")
        if not usuario.activo:
            raise Prohibido("Usuario inactivo")
        if not verify_password(usuario.password, password):
            log.info("login_rechazado", ci=ci)
            raise NoAutenticado("Credenciales inválidas")

        access = emitir_access_token(self._settings, usuario)
        refresh = issue_token(
            cfg=refresh_config(self._settings),
            subject=str(usuario.id_usuario),
            token_type="refresh",
            ttl=timedelta(days=self._settings.refresh_token_ttl_days),
            claims={"id": usuario.id_usuario},
        )
        await self._registry.add(refresh)

        await self._audit.registrar(
            id_usuario=usuario.id_usuario,
            tipo_entidad="auth",
            id_entidad=usuario.id_usuario,
            accion="login",
            detalles=f"Inicio de sesión: {usuario.nombre} (CI: {usuario.ci})",
        )
        await self._session.commit()
        log.info("login", id_usuario=usuario.id_usuario, rol=usuario.rol.value)
        return TokenPair(access_token=access, refresh_token=refresh, usuario=usuario)

    async def refresh(self, *, refresh_token: str | None) -> str:
        if not refresh_token:
            raise NoAutenticado("Refresh token requerido")
        if not await self._registry.contains(refresh_token):
            raise Prohibido("Refresh token inválido")

        try:
            payload = decode_and_validate(
                cfg=refresh_config(self._settings), token=refresh_token, token_type="refresh"
            )
        except JwtExpiredError as e:
            await self._registry.revoke(refresh_token)
            raise Prohibido("Refresh token expirado") from e
        except JwtValidationError as e:
            await self._registry.revoke(refresh_token)
            raise Prohibido("Refresh token inválido") from e

        usuario = await self._usuarios.get(int(payload["sub"]))
        if usuario is None:
            raise NoEncontrado("Usuario no encontrado")
        if not usuario.activo:
            raise Prohibido("Usuario inactivo")
        return emitir_access_token(self._settings, usuario)

    async def logout(self, *, refresh_token: str | None) -> None:
        if refresh_token:
            await self._registry.revoke(refresh_token)
