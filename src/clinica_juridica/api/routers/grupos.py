"""
clinica_juridica.api.routers.grupos

Student-group endpoints.

Responsibilities:
- List groups with their members.
- Create groups and enrol members (administradores only).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from clinica_juridica.api.deps import db_session, request_meta
from clinica_juridica.api.schemas import GrupoOut
from clinica_juridica.auth.deps import get_current_usuario
from clinica_juridica.db.models import Grupo, Rol, RolEnGrupo, Usuario
from clinica_juridica.db.repositories.grupos import GrupoRepo
from clinica_juridica.db.repositories.usuarios import UsuarioRepo
from clinica_juridica.services.auditoria import AuditoriaService, RequestMeta
from clinica_juridica.services.errors import Conflicto, DatosInvalidos, NoEncontrado, Prohibido

router = APIRouter(prefix="/api/grupos", tags=["grupos"])


class GrupoCreateRequest(BaseModel):
    nombre: str | None = None


class MiembroRequest(BaseModel):
    id_usuario: int | None = None
    rol_en_grupo: RolEnGrupo = RolEnGrupo.estudiante


def _exigir_admin(actor: Usuario) -> None:
    if actor.rol != Rol.administrador:
        raise Prohibido("Solo los administradores pueden gestionar grupos")


@router.get("", response_model=list[GrupoOut])
async def list_grupos(
    activo: bool | None = None,
    _: Usuario = Depends(get_current_usuario),
    session: AsyncSession = Depends(db_session),
) -> list[Grupo]:
    return await GrupoRepo(session).list(activo=activo)


@router.post("", response_model=GrupoOut, status_code=HTTP_201_CREATED)
async def create_grupo(
    body: GrupoCreateRequest,
    actor: Usuario = Depends(get_current_usuario),
    session: AsyncSession = Depends(db_session),
    meta: RequestMeta = Depends(request_meta),
) -> Grupo:
    _exigir_admin(actor)
    if not body.nombre or not body.nombre.strip():
        raise DatosInvalidos("El nombre del grupo es requerido")

    repo = GrupoRepo(session)
    grupo = await repo.create(nombre=body.nombre.strip())
    await AuditoriaService(session, meta).registrar(
        id_usuario=actor.id_usuario,
        tipo_entidad="grupo",
        id_entidad=grupo.id_grupo,
        accion="crear",
        detalles=f"Grupo creado: {grupo.nombre}",
    )
    await session.commit()
    return await repo.get(grupo.id_grupo)


@router.post("/{id_grupo}/miembros", response_model=GrupoOut, status_code=HTTP_201_CREATED)
async def add_miembro(
    id_grupo: int,
    body: MiembroRequest,
    actor: Usuario = Depends(get_current_usuario),
    session: AsyncSession = Depends(db_session),
    meta: RequestMeta = Depends(request_meta),
) -> Grupo:
    _exigir_admin(actor)
    if not body.id_usuario:
        raise DatosInvalidos("id_usuario es requerido")

    repo = GrupoRepo(session)
    grupo = await repo.get(id_grupo)
    if grupo is None:
        raise NoEncontrado("Grupo no encontrado")
    usuario = await UsuarioRepo(session).get(body.id_usuario)
    if usuario is None:
        raise NoEncontrado("Usuario no encontrado")
    if await repo.is_member(id_grupo=id_grupo, id_usuario=usuario.id_usuario):
        raise Conflicto("El usuario ya es miembro del grupo")

    await repo.add_member(
        id_grupo=id_grupo, id_usuario=usuario.id_usuario, rol_en_grupo=body.rol_en_grupo
    )
    await AuditoriaService(session, meta).registrar(
        id_usuario=actor.id_usuario,
        tipo_entidad="grupo",
        id_entidad=id_grupo,
        accion="asignar",
        detalles=f"{usuario.nombre} agregado al grupo {grupo.nombre} como {body.rol_en_grupo.value}",
    )
    await session.commit()
    return await repo.get(id_grupo)
