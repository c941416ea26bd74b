"""
clinica_juridica.services.tramites

Case-folder ("trámite") service.

Responsibilities:
- Create trámites with a sequential `num_carpeta` and update their status.
- Fan out status notifications to the client and the handling group.
- Append to and read the procedural log (hoja de ruta).

Notes:
- Create/update/notify are the endpoints the orchestrator drives, so the actor may be a
  service identity without a Usuario row (`id_actor=None`).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import (
    HojaRuta,
    Rol,
    RolEnGrupo,
    TipoNotificacion,
    Tramite,
    TramiteEstado,
    Usuario,
    utcnow,
)
from clinica_juridica.db.repositories.consultantes import ConsultanteRepo
from clinica_juridica.db.repositories.grupos import GrupoRepo
from clinica_juridica.db.repositories.hoja_ruta import HojaRutaRepo
from clinica_juridica.db.repositories.tramites import TramiteRepo
from clinica_juridica.observability.logging import get_logger
from clinica_juridica.services.auditoria import AuditoriaService, RequestMeta, filtros_detalle
from clinica_juridica.services.errors import Conflicto, DatosInvalidos, NoEncontrado, Prohibido
from clinica_juridica.services.notificaciones import NotificacionService
from clinica_juridica.services.numbering import allocate, current_year, next_num_carpeta
from clinica_juridica.settings import Settings

log = get_logger(__name__)

ESTADOS_CERRADOS = frozenset({TramiteEstado.finalizado, TramiteEstado.desistido})


def _parse_estado(raw: str) -> TramiteEstado:
    try:
        return TramiteEstado(raw)
    except ValueError as e:
        validos = ", ".join(m.value for m in TramiteEstado)
        raise DatosInvalidos(f"Estado inválido. Debe ser uno de: {validos}") from e


def _tipo_notificacion(raw: str | None) -> TipoNotificacion:
    # Process models send free-form types ("estado_actualizado", ...); unknown ones are info.
    try:
        return TipoNotificacion(raw) if raw else TipoNotificacion.info
    except ValueError:
        return TipoNotificacion.info


class TramiteService:
    def __init__(
        self, *, session: AsyncSession, settings: Settings, meta: RequestMeta | None = None
    ) -> None:
        self._session = session
        self._settings = settings

        self.repo = TramiteRepo(session)
        self._consultantes = ConsultanteRepo(session)
        self._grupos = GrupoRepo(session)
        self._hoja_ruta = HojaRutaRepo(session)
        self._audit = AuditoriaService(session, meta)
        self._notificaciones = NotificacionService(session)

    async def get_or_404(self, id_tramite: int) -> Tramite:
        tramite = await self.repo.get(id_tramite)
        if tramite is None:
            raise NoEncontrado("Trámite no encontrado")
        return tramite

    async def asignar_num_carpeta(self, *, today: date | None = None) -> str:
        year = current_year(today)
        yy = str(year)[-2:]
        return await allocate(
            kind="carpeta",
            scan=lambda: self.repo.carpetas_del_anio(yy),
            compute=lambda existing: next_num_carpeta(existing, year=year),
            exists=self.repo.num_carpeta_exists,
            max_attempts=self._settings.numbering_max_attempts,
            retry_delay_ms=self._settings.numbering_retry_delay_ms,
        )

    async def listar(
        self,
        *,
        id_actor: int | None,
        estado: TramiteEstado | None = None,
        id_grupo: int | None = None,
        id_consultante: int | None = None,
    ) -> list[Tramite]:
        tramites = await self.repo.list(estado=estado, id_grupo=id_grupo, id_consultante=id_consultante)
        await self._audit.registrar(
            id_usuario=id_actor,
            tipo_entidad="tramite",
            accion="listar",
            detalles=filtros_detalle(
                "Listado de trámites consultado",
                {"estado": estado.value if estado else None, "grupo": id_grupo},
            ),
        )
        await self._session.commit()
        return tramites

    async def stats(self) -> dict[str, int]:
        counts = await self.repo.count_by_estado()
        return {
            "total": sum(counts.values()),
            "pendientes": counts.get(TramiteEstado.pendiente, 0),
            "en_proceso": counts.get(TramiteEstado.en_tramite, 0),
            "completados": counts.get(TramiteEstado.finalizado, 0),
            "cancelados": counts.get(TramiteEstado.desistido, 0),
        }

    async def obtener(self, *, id_actor: int | None, id_tramite: int) -> Tramite:
        tramite = await self.get_or_404(id_tramite)
        await self._audit.registrar(
            id_usuario=id_actor,
            tipo_entidad="tramite",
            id_entidad=tramite.id_tramite,
            accion="consultar",
            detalles=f"Trámite consultado: {tramite.num_carpeta} (Estado: {tramite.estado.value})",
        )
        await self._session.commit()
        return tramite

    async def crear(
        self,
        *,
        id_actor: int | None,
        id_consultante: int | None,
        id_grupo: int | None,
        num_carpeta: str | None = None,
        observaciones: str | None = None,
        today: date | None = None,
    ) -> Tramite:
        if not id_consultante or not id_grupo:
            raise DatosInvalidos("id_consultante e id_grupo son requeridos")
        if await self._consultantes.get(id_consultante) is None:
            raise NoEncontrado("Consultante no encontrado")
        if await self._grupos.get(id_grupo) is None:
            raise NoEncontrado("Grupo no encontrado")

        if num_carpeta:
            if await self.repo.num_carpeta_exists(num_carpeta):
                raise Conflicto("Ya existe un trámite con ese número de carpeta")
        else:
            num_carpeta = await self.asignar_num_carpeta(today=today)

        tramite = await self.repo.create(
            id_consultante=id_consultante,
            id_grupo=id_grupo,
            num_carpeta=num_carpeta,
            observaciones=observaciones,
            estado=TramiteEstado.en_tramite,
        )
        log.info("tramite_creado", id_tramite=tramite.id_tramite, num_carpeta=num_carpeta)

        await self._audit.registrar(
            id_usuario=id_actor,
            tipo_entidad="tramite",
            id_entidad=tramite.id_tramite,
            accion="crear",
            detalles=f"Trámite creado: {num_carpeta}",
        )
        await self._session.commit()
        return await self.get_or_404(tramite.id_tramite)

    async def actualizar(
        self, *, id_actor: int | None, id_tramite: int, cambios: dict[str, Any]
    ) -> Tramite:
        tramite = await self.get_or_404(id_tramite)
        anterior = tramite.estado
        campos: list[str] = []

        if cambios.get("estado") is not None:
            nuevo = _parse_estado(cambios["estado"])
            if nuevo != tramite.estado:
                campos.append(f"estado: {tramite.estado.value} → {nuevo.value}")
                tramite.estado = nuevo
                if nuevo in ESTADOS_CERRADOS and tramite.fecha_cierre is None:
                    tramite.fecha_cierre = utcnow()
        if "observaciones" in cambios:
            tramite.observaciones = cambios["observaciones"]
            campos.append("observaciones")
        if cambios.get("fecha_cierre") is not None:
            tramite.fecha_cierre = cambios["fecha_cierre"]
            campos.append("fecha_cierre")
        if "motivo_cierre" in cambios:
            tramite.motivo_cierre = cambios["motivo_cierre"]
            campos.append("motivo_cierre")
        await self._session.flush()

        log.info(
            "tramite_actualizado",
            id_tramite=id_tramite,
            estado_anterior=anterior.value,
            estado=tramite.estado.value,
        )
        await self._audit.registrar(
            id_usuario=id_actor,
            tipo_entidad="tramite",
            id_entidad=tramite.id_tramite,
            accion="modificar",
            detalles=(
                f"Trámite {tramite.num_carpeta} modificado. Cambios: {', '.join(campos)}"
                if campos
                else f"Trámite {tramite.num_carpeta} actualizado"
            ),
        )
        await self._session.commit()
        return await self.get_or_404(id_tramite)

    async def notificar(
        self,
        *,
        id_actor: int | None,
        id_tramite: int | None,
        tipo_notificacion: str | None,
        mensaje: str | None,
    ) -> int:
        if not id_tramite or not mensaje:
            raise DatosInvalidos("id_tramite y mensaje son requeridos")
        tramite = await self.get_or_404(id_tramite)
        tipo = _tipo_notificacion(tipo_notificacion)
        titulo = f"Actualización del trámite {tramite.num_carpeta}"

        destinatarios = {tramite.consultante.id_usuario}
        destinatarios.update(await self._grupos.member_ids(tramite.id_grupo))

        enviadas = 0
        for id_usuario in sorted(destinatarios):
            ok = await self._notificaciones.crear(
                id_usuario=id_usuario,
                id_usuario_emisor=id_actor,
                titulo=titulo,
                mensaje=mensaje,
                tipo=tipo,
                tipo_entidad="tramite",
                id_entidad=tramite.id_tramite,
                id_tramite=tramite.id_tramite,
            )
            enviadas += int(ok)

        await self._audit.registrar(
            id_usuario=id_actor,
            tipo_entidad="tramite",
            id_entidad=tramite.id_tramite,
            accion="notificar",
            detalles=f"Notificación ({tipo_notificacion or tipo.value}) enviada a {enviadas} usuarios",
        )
        await self._session.commit()
        return enviadas

    async def listar_hoja_ruta(self, *, id_tramite: int) -> list[HojaRuta]:
        await self.get_or_404(id_tramite)
        return await self._hoja_ruta.list_for_tramite(id_tramite)

    async def agregar_actuacion(
        self,
        *,
        actor: Usuario,
        id_tramite: int,
        descripcion: str | None,
        fecha_actuacion: datetime | None = None,
    ) -> HojaRuta:
        if not descripcion or not descripcion.strip():
            raise DatosInvalidos("La descripción es requerida")
        tramite = await self.get_or_404(id_tramite)

        if actor.rol not in (Rol.administrador, Rol.docente):
            es_estudiante_del_grupo = await self._grupos.is_member(
                id_grupo=tramite.id_grupo,
                id_usuario=actor.id_usuario,
                rol_en_grupo=RolEnGrupo.estudiante,
            )
            if not es_estudiante_del_grupo:
                raise Prohibido(
                    "Solo los estudiantes del grupo, docentes o administradores pueden "
                    "registrar actuaciones"
                )

        entry = await self._hoja_ruta.add(
            id_tramite=id_tramite,
            id_usuario=actor.id_usuario,
            descripcion=descripcion.strip(),
            fecha_actuacion=fecha_actuacion,
        )
        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="hoja_ruta",
            id_entidad=entry.id_hoja_ruta,
            accion="crear",
            detalles=f"Actuación registrada en trámite {tramite.num_carpeta}",
        )
        await self._session.commit()
        await self._session.refresh(entry, attribute_names=["usuario"])
        return entry
