"""
clinica_juridica.api.routers.fichas

Intake ("ficha") endpoints.

Responsibilities:
- CRUD over fichas with search and status filters.
- Lifecycle transitions: aprobar, asignar (to a group), iniciar-tramite.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from clinica_juridica.api.deps import db_session, request_meta, settings_dep, workflow_client
from clinica_juridica.api.schemas import FichaOut, TramiteOut
from clinica_juridica.auth.deps import get_current_usuario
from clinica_juridica.db.models import Ficha, FichaEstado, Usuario
from clinica_juridica.services.auditoria import RequestMeta
from clinica_juridica.services.fichas import FichaService
from clinica_juridica.settings import Settings
from clinica_juridica.workflow.client import WorkflowClient

router = APIRouter(prefix="/api/fichas", tags=["fichas"])


class _FichaFields(BaseModel):
    fecha_cita: date | None = None
    hora_cita: str | None = None

    @field_validator("fecha_cita", "hora_cita", mode="before")
    @classmethod
    def _blank_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class FichaCreateRequest(_FichaFields):
    id_consultante: int | None = None
    id_docente: int | None = None
    tema_consulta: str | None = None
    observaciones: str | None = None
    estado: str | None = None


class FichaUpdateRequest(_FichaFields):
    id_docente: int | None = None
    tema_consulta: str | None = None
    observaciones: str | None = None


class AprobarRequest(_FichaFields):
    pass


class AsignarRequest(BaseModel):
    id_grupo: int | None = None


class IniciarTramiteRequest(BaseModel):
    observaciones: str | None = None


class IniciarTramiteResponse(BaseModel):
    message: str
    tramite: TramiteOut
    ficha: FichaOut


def _service(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    meta: RequestMeta = Depends(request_meta),
    workflow: WorkflowClient | None = Depends(workflow_client),
) -> FichaService:
    return FichaService(session=session, settings=settings, meta=meta, workflow=workflow)


@router.get("", response_model=list[FichaOut])
async def list_fichas(
    estado: FichaEstado | None = None,
    id_docente: int | None = None,
    id_consultante: int | None = None,
    search: str | None = None,
    actor: Usuario = Depends(get_current_usuario),
    svc: FichaService = Depends(_service),
) -> list[Ficha]:
    return await svc.listar(
        actor=actor,
        estado=estado,
        id_docente=id_docente,
        id_consultante=id_consultante,
        search=search,
    )


@router.get("/standby", response_model=list[FichaOut])
async def list_fichas_standby(
    _: Usuario = Depends(get_current_usuario),
    svc: FichaService = Depends(_service),
) -> list[Ficha]:
    return await svc.listar_standby()


@router.get("/{id_ficha}", response_model=FichaOut)
async def get_ficha(
    id_ficha: int,
    actor: Usuario = Depends(get_current_usuario),
    svc: FichaService = Depends(_service),
) -> Ficha:
    return await svc.obtener(actor=actor, id_ficha=id_ficha)


@router.post("", response_model=FichaOut, status_code=HTTP_201_CREATED)
async def create_ficha(
    body: FichaCreateRequest,
    actor: Usuario = Depends(get_current_usuario),
    svc: FichaService = Depends(_service),
) -> Ficha:
    return await svc.crear(
        actor=actor,
        id_consultante=body.id_consultante,
        id_docente=body.id_docente,
        tema_consulta=body.tema_consulta,
        fecha_cita=body.fecha_cita,
        hora_cita=body.hora_cita,
        observaciones=body.observaciones,
        estado=body.estado,
    )


@router.post("/{id_ficha}/aprobar", response_model=FichaOut)
async def aprobar_ficha(
    id_ficha: int,
    body: AprobarRequest,
    actor: Usuario = Depends(get_current_usuario),
    svc: FichaService = Depends(_service),
) -> Ficha:
    return await svc.aprobar(
        actor=actor, id_ficha=id_ficha, fecha_cita=body.fecha_cita, hora_cita=body.hora_cita
    )


@router.post("/{id_ficha}/asignar", response_model=FichaOut)
async def asignar_ficha(
    id_ficha: int,
    body: AsignarRequest,
    actor: Usuario = Depends(get_current_usuario),
    svc: FichaService = Depends(_service),
) -> Ficha:
    return await svc.asignar_grupo(actor=actor, id_ficha=id_ficha, id_grupo=body.id_grupo)


@router.post(
    "/{id_ficha}/iniciar-tramite",
    response_model=IniciarTramiteResponse,
    status_code=HTTP_201_CREATED,
)
async def iniciar_tramite(
    id_ficha: int,
    body: IniciarTramiteRequest | None = None,
    actor: Usuario = Depends(get_current_usuario),
    svc: FichaService = Depends(_service),
) -> IniciarTramiteResponse:
    tramite, ficha = await svc.iniciar_tramite(
        actor=actor, id_ficha=id_ficha, observaciones=body.observaciones if body else None
    )
    return IniciarTramiteResponse(
        message="Trámite iniciado exitosamente",
        tramite=TramiteOut.model_validate(tramite),
        ficha=FichaOut.model_validate(ficha),
    )


@router.patch("/{id_ficha}", response_model=FichaOut)
async def update_ficha(
    id_ficha: int,
    body: FichaUpdateRequest,
    actor: Usuario = Depends(get_current_usuario),
    svc: FichaService = Depends(_service),
) -> Ficha:
    return await svc.actualizar(
        actor=actor, id_ficha=id_ficha, cambios=body.model_dump(exclude_unset=True)
    )


@router.delete("/{id_ficha}")
async def delete_ficha(
    id_ficha: int,
    actor: Usuario = Depends(get_current_usuario),
    svc: FichaService = Depends(_service),
) -> dict[str, str]:
    await svc.eliminar(actor=actor, id_ficha=id_ficha)
    return {"message": "Ficha eliminada exitosamente"}
