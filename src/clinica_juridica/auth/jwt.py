"""
clinica_juridica.auth.jwt

JWT issuing and validation helpers.

Responsibilities:
- Issue access tokens (user claims) and refresh tokens (subject only) with distinct secrets.
- Issue short-lived service tokens for the orchestrator's calls into the backend.
- Decode and validate JWTs with strict claim requirements (iss/aud/exp/iat/sub/typ).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError

from clinica_juridica.settings import Settings

TokenType = Literal["access", "refresh"]


@dataclass(frozen=True, slots=True)
class JwtConfig:
    alg: str
    issuer: str
    audience: str
    secret: str


class JwtValidationError(Exception):
    pass


class JwtExpiredError(JwtValidationError):
    pass


def access_config(settings: Settings) -> JwtConfig:
    return JwtConfig(
        alg=settings.jwt_alg,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        secret=settings.jwt_secret,
    )


def refresh_config(settings: Settings) -> JwtConfig:
    return JwtConfig(
        alg=settings.jwt_alg,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        secret=settings.jwt_refresh_secret,
    )


def issue_token(
    *,
    cfg: JwtConfig,
    subject: str,
    token_type: TokenType,
    ttl: timedelta,
    claims: dict[str, Any] | None = None,
) -> str:
    now = datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        **(claims or {}),
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": subject,
        "typ": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        # jti keeps two tokens minted within the same second distinct.
        "jti": f"{now.timestamp():.6f}-{subject}",
    }
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def decode_and_validate(*, cfg: JwtConfig, token: str, token_type: TokenType) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={"require": ["exp", "iat", "iss", "aud", "sub", "typ"]},
        )
    except ExpiredSignatureError as e:
        raise JwtExpiredError(str(e)) from e
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e
    if payload.get("typ") != token_type:
        raise JwtValidationError(f"expected {token_type} token")
    return payload


# --- Module Notes -----------------------------------------------------------
# Token issuing is used by:
# - `api/routers/auth.py` (login/refresh)
# - `orchestrator/backend_client.py` (service identity, rol=sistema)
