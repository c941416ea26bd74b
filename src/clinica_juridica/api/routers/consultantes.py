"""
clinica_juridica.api.routers.consultantes

Client ("consultante") endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from clinica_juridica.api.deps import db_session, request_meta
from clinica_juridica.api.schemas import ConsultanteOut
from clinica_juridica.auth.deps import get_current_usuario
from clinica_juridica.db.models import Consultante, Rol, Usuario
from clinica_juridica.db.repositories.consultantes import ConsultanteRepo
from clinica_juridica.db.repositories.usuarios import UsuarioRepo
from clinica_juridica.services.auditoria import AuditoriaService, RequestMeta
from clinica_juridica.services.errors import DatosInvalidos, NoEncontrado, Prohibido

router = APIRouter(prefix="/api/consultantes", tags=["consultantes"])


class ConsultanteCreateRequest(BaseModel):
    id_usuario: int | None = None
    est_civil: str | None = None
    nro_padron: int | None = None


@router.get("", response_model=list[ConsultanteOut])
async def list_consultantes(
    _: Usuario = Depends(get_current_usuario),
    session: AsyncSession = Depends(db_session),
) -> list[Consultante]:
    return await ConsultanteRepo(session).list()


@router.post("", response_model=ConsultanteOut, status_code=HTTP_201_CREATED)
async def create_consultante(
    body: ConsultanteCreateRequest,
    actor: Usuario = Depends(get_current_usuario),
    session: AsyncSession = Depends(db_session),
    meta: RequestMeta = Depends(request_meta),
) -> Consultante:
    if actor.rol != Rol.administrador:
        raise Prohibido("Solo los administradores pueden registrar consultantes")
    if not body.id_usuario:
        raise DatosInvalidos("id_usuario es requerido")

    usuario = await UsuarioRepo(session).get(body.id_usuario)
    if usuario is None:
        raise NoEncontrado("Usuario no encontrado")
    if usuario.rol != Rol.consultante:
        raise DatosInvalidos("El usuario especificado no es un consultante")

    repo = ConsultanteRepo(session)
    consultante = await repo.create(
        id_usuario=usuario.id_usuario, est_civil=body.est_civil, nro_padron=body.nro_padron
    )
    await AuditoriaService(session, meta).registrar(
        id_usuario=actor.id_usuario,
        tipo_entidad="consultante",
        id_entidad=consultante.id_consultante,
        accion="crear",
        detalles=f"Consultante registrado: {usuario.nombre} (CI: {usuario.ci})",
    )
    await session.commit()
    await session.refresh(consultante, attribute_names=["usuario"])
    return consultante
