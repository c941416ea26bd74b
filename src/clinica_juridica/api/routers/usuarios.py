"""
clinica_juridica.api.routers.usuarios

User management endpoints.

Responsibilities:
- List/read users (audited) and the user-scoped audit feed.
- Create/update/activate/deactivate users (administradores only).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from clinica_juridica.api.deps import db_session, request_meta
from clinica_juridica.api.schemas import AuditoriaOut, UsuarioDetalleOut, UsuarioOut
from clinica_juridica.auth.deps import get_current_usuario
from clinica_juridica.db.models import Auditoria, Rol, Usuario
from clinica_juridica.db.repositories.auditoria import AuditoriaRepo
from clinica_juridica.services.auditoria import RequestMeta
from clinica_juridica.services.errors import Prohibido
from clinica_juridica.services.usuarios import UsuarioService

router = APIRouter(prefix="/api/usuarios", tags=["usuarios"])


class UsuarioCreateRequest(BaseModel):
    nombre: str | None = None
    ci: str | None = None
    domicilio: str | None = None
    telefono: str | None = None
    correo: str | None = None
    password: str | None = None
    rol: str | None = None
    nivel_acceso: int | None = None
    semestre: str | None = None
    id_grupo: int | None = None


class UsuarioUpdateRequest(BaseModel):
    nombre: str | None = None
    ci: str | None = None
    domicilio: str | None = None
    telefono: str | None = None
    correo: str | None = None
    password: str | None = None
    rol: str | None = None
    nivel_acceso: int | None = None
    semestre: str | None = None
    activo: bool | None = None


def _service(
    session: AsyncSession = Depends(db_session),
    meta: RequestMeta = Depends(request_meta),
) -> UsuarioService:
    return UsuarioService(session=session, meta=meta)


@router.get("", response_model=list[UsuarioOut])
async def list_usuarios(
    rol: Rol | None = None,
    activo: bool | None = None,
    search: str | None = None,
    actor: Usuario = Depends(get_current_usuario),
    svc: UsuarioService = Depends(_service),
) -> list[Usuario]:
    return await svc.listar(actor=actor, rol=rol, activo=activo, search=search)


@router.get("/auditoria", response_model=list[AuditoriaOut])
async def list_auditoria_usuarios(
    tipo_entidad: str | None = None,
    id_entidad: int | None = None,
    accion: str | None = None,
    limit: int = Query(default=100, ge=1, le=100),
    actor: Usuario = Depends(get_current_usuario),
    session: AsyncSession = Depends(db_session),
) -> list[Auditoria]:
    if actor.rol != Rol.administrador:
        raise Prohibido("Solo los administradores pueden consultar la auditoría")
    return await AuditoriaRepo(session).list(
        tipo_entidad=tipo_entidad, id_entidad=id_entidad, accion=accion, limit=limit
    )


@router.get("/{id_usuario}", response_model=UsuarioDetalleOut)
async def get_usuario(
    id_usuario: int,
    actor: Usuario = Depends(get_current_usuario),
    svc: UsuarioService = Depends(_service),
) -> Usuario:
    return await svc.obtener(actor=actor, id_usuario=id_usuario)


@router.post("", response_model=UsuarioDetalleOut, status_code=HTTP_201_CREATED)
async def create_usuario(
    body: UsuarioCreateRequest,
    actor: Usuario = Depends(get_current_usuario),
    svc: UsuarioService = Depends(_service),
) -> Usuario:
    return await svc.crear(actor=actor, datos=body.model_dump())


@router.patch("/{id_usuario}", response_model=UsuarioDetalleOut)
async def update_usuario(
    id_usuario: int,
    body: UsuarioUpdateRequest,
    actor: Usuario = Depends(get_current_usuario),
    svc: UsuarioService = Depends(_service),
) -> Usuario:
    return await svc.actualizar(
        actor=actor, id_usuario=id_usuario, cambios=body.model_dump(exclude_unset=True)
    )


@router.post("/{id_usuario}/activar", response_model=UsuarioOut)
async def activar_usuario(
    id_usuario: int,
    actor: Usuario = Depends(get_current_usuario),
    svc: UsuarioService = Depends(_service),
) -> Usuario:
    return await svc.activar(actor=actor, id_usuario=id_usuario)


@router.post("/{id_usuario}/desactivar", response_model=UsuarioOut)
async def desactivar_usuario(
    id_usuario: int,
    actor: Usuario = Depends(get_current_usuario),
    svc: UsuarioService = Depends(_service),
) -> Usuario:
    return await svc.desactivar(actor=actor, id_usuario=id_usuario)
