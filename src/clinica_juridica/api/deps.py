"""
clinica_juridica.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and the workflow client.
- Encapsulate app.state access patterns.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinica_juridica.auth.tokens import RefreshTokenRegistry
from clinica_juridica.services.auditoria import RequestMeta
from clinica_juridica.settings import Settings
from clinica_juridica.workflow.client import WorkflowClient


def settings_dep(request: Request) -> Settings:
    # Settings are bound to the app in `create_app`.
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the service layer.
    async with session_factory() as session:
        yield session


def refresh_registry(request: Request) -> RefreshTokenRegistry:
    return request.app.state.refresh_tokens  # type: ignore[attr-defined]


def workflow_client(request: Request) -> WorkflowClient | None:
    return getattr(request.app.state, "workflow_client", None)


def request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        ip_address=request.client.host if request.client else "unknown",
        user_agent=request.headers.get("user-agent"),
    )
