"""
clinica_juridica.api.routers.tramites

Case-folder ("trámite") endpoints.

Responsibilities:
- Read APIs (list, stats, detail, hoja de ruta) for authenticated users.
- Create/update/notify for the orchestrator's service identity and staff.
- Append procedural log entries.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from clinica_juridica.api.deps import db_session, request_meta, settings_dep
from clinica_juridica.api.schemas import HojaRutaOut, TramiteOut
from clinica_juridica.auth.deps import get_current_usuario, get_optional_usuario, require_roles
from clinica_juridica.auth.models import SERVICE_ROLE
from clinica_juridica.db.models import HojaRuta, Rol, Tramite, TramiteEstado, Usuario
from clinica_juridica.services.auditoria import RequestMeta
from clinica_juridica.services.tramites import TramiteService
from clinica_juridica.settings import Settings

router = APIRouter(prefix="/api/tramites", tags=["tramites"])

_staff_or_service = require_roles(SERVICE_ROLE, Rol.administrador.value, Rol.docente.value)


class TramiteCreateRequest(BaseModel):
    id_consultante: int | None = None
    id_grupo: int | None = None
    num_carpeta: str | None = None
    observaciones: str | None = None


class TramiteUpdateRequest(BaseModel):
    estado: str | None = None
    observaciones: str | None = None
    fecha_cierre: datetime | None = None
    motivo_cierre: str | None = None


class NotificarRequest(BaseModel):
    id_tramite: int | None = None
    tipo_notificacion: str | None = None
    mensaje: str | None = None


class HojaRutaRequest(BaseModel):
    descripcion: str | None = None
    fecha_actuacion: datetime | None = None


def _service(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    meta: RequestMeta = Depends(request_meta),
) -> TramiteService:
    return TramiteService(session=session, settings=settings, meta=meta)


def _actor_id(actor: Usuario | None) -> int | None:
    return actor.id_usuario if actor is not None else None


@router.get("", response_model=list[TramiteOut])
async def list_tramites(
    estado: TramiteEstado | None = None,
    id_grupo: int | None = None,
    id_consultante: int | None = None,
    actor: Usuario | None = Depends(get_optional_usuario),
    svc: TramiteService = Depends(_service),
) -> list[Tramite]:
    return await svc.listar(
        id_actor=_actor_id(actor), estado=estado, id_grupo=id_grupo, id_consultante=id_consultante
    )


@router.get("/stats")
async def tramites_stats(
    _: Usuario | None = Depends(get_optional_usuario),
    svc: TramiteService = Depends(_service),
) -> dict[str, int]:
    return await svc.stats()


@router.post("/notificar")
async def notificar_tramite(
    body: NotificarRequest,
    _principal=Depends(_staff_or_service),
    actor: Usuario | None = Depends(get_optional_usuario),
    svc: TramiteService = Depends(_service),
) -> dict[str, object]:
    enviadas = await svc.notificar(
        id_actor=_actor_id(actor),
        id_tramite=body.id_tramite,
        tipo_notificacion=body.tipo_notificacion,
        mensaje=body.mensaje,
    )
    return {"message": "Notificación enviada", "enviadas": enviadas}


@router.get("/{id_tramite}", response_model=TramiteOut)
async def get_tramite(
    id_tramite: int,
    actor: Usuario | None = Depends(get_optional_usuario),
    svc: TramiteService = Depends(_service),
) -> Tramite:
    return await svc.obtener(id_actor=_actor_id(actor), id_tramite=id_tramite)


@router.post("", response_model=TramiteOut, status_code=HTTP_201_CREATED)
async def create_tramite(
    body: TramiteCreateRequest,
    _principal=Depends(_staff_or_service),
    actor: Usuario | None = Depends(get_optional_usuario),
    svc: TramiteService = Depends(_service),
) -> Tramite:
    return await svc.crear(
        id_actor=_actor_id(actor),
        id_consultante=body.id_consultante,
        id_grupo=body.id_grupo,
        num_carpeta=body.num_carpeta,
        observaciones=body.observaciones,
    )


@router.patch("/{id_tramite}", response_model=TramiteOut)
async def update_tramite(
    id_tramite: int,
    body: TramiteUpdateRequest,
    _principal=Depends(_staff_or_service),
    actor: Usuario | None = Depends(get_optional_usuario),
    svc: TramiteService = Depends(_service),
) -> Tramite:
    return await svc.actualizar(
        id_actor=_actor_id(actor),
        id_tramite=id_tramite,
        cambios=body.model_dump(exclude_unset=True),
    )


@router.get("/{id_tramite}/hoja-ruta", response_model=list[HojaRutaOut])
async def list_hoja_ruta(
    id_tramite: int,
    _: Usuario | None = Depends(get_optional_usuario),
    svc: TramiteService = Depends(_service),
) -> list[HojaRuta]:
    return await svc.listar_hoja_ruta(id_tramite=id_tramite)


@router.post("/{id_tramite}/hoja-ruta", response_model=HojaRutaOut, status_code=HTTP_201_CREATED)
async def add_hoja_ruta(
    id_tramite: int,
    body: HojaRutaRequest,
    actor: Usuario = Depends(get_current_usuario),
    svc: TramiteService = Depends(_service),
) -> HojaRuta:
    return await svc.agregar_actuacion(
        actor=actor,
        id_tramite=id_tramite,
        descripcion=body.descripcion,
        fecha_actuacion=body.fecha_actuacion,
    )
