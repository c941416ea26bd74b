"""
clinica_juridica.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for the backend API and the orchestrator.
- Hide secrets from repr/logging (JWT secrets).
- Offer a cached settings instance for entrypoints.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Both services read the same settings object; each one only uses its own section.
    """

    model_config = SettingsConfigDict(env_prefix="CJ_", case_sensitive=False)

    # Environment controls toggle behavior like auto-init DB tables.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "clinica-juridica"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 3001

    # Auth
    jwt_alg: str = "HS256"
    jwt_issuer: str = "clinica-juridica"
    jwt_audience: str = "clinica-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)
    jwt_refresh_secret: str = Field(default="dev-refresh-secret-change-me", repr=False)
    access_token_ttl_minutes: int = 8 * 60
    refresh_token_ttl_days: int = 7

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./clinica.db"
    # First administrador, created at startup when both are set and the CI is unused.
    seed_admin_ci: str | None = None
    seed_admin_password: str | None = Field(default=None, repr=False)

    # Sequential numbering (consulta / carpeta)
    numbering_max_attempts: int = 10
    numbering_retry_delay_ms: int = 100

    # Backend -> orchestrator (process start requests)
    workflow_enabled: bool = True
    orchestrator_url: str = "http://localhost:3002"
    tramite_process_key: str = "procesoTramiteGrupos"

    # Orchestrator
    orchestrator_host: str = "0.0.0.0"
    orchestrator_port: int = 3002
    orchestrator_service_name: str = "orchestrator"
    camunda_url: str = "http://localhost:8081/engine-rest"
    backend_url: str = "http://backend:3001"
    worker_id: str = "clinica-orchestrator"
    worker_autopoll: bool = True
    worker_max_tasks: int = 1
    worker_lock_duration_ms: int = 30000
    worker_async_response_timeout_ms: int = 30000
    http_timeout_seconds: float = 10.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars on every entrypoint call.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# The API reads settings from app.state (see `api.deps.settings_dep`) so tests can inject
# their own instance without touching the process-wide cache.
