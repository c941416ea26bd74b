"""
clinica_juridica.services.fichas

Intake ("ficha") lifecycle service.

Responsibilities:
- Create fichas (administrativos only) with a sequential `numero_consulta`.
- Enforce the inline lifecycle: pendiente -> standby -> asignada -> iniciada.
- Start a trámite from an assigned ficha and hand it to the workflow engine.
- Audit every action and notify the people involved.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.db.models import (
    Ficha,
    FichaEstado,
    NivelAcceso,
    Rol,
    RolEnGrupo,
    TipoNotificacion,
    Tramite,
    TramiteEstado,
    Usuario,
)
from clinica_juridica.db.repositories.consultantes import ConsultanteRepo
from clinica_juridica.db.repositories.fichas import FichaRepo
from clinica_juridica.db.repositories.grupos import GrupoRepo
from clinica_juridica.db.repositories.usuarios import UsuarioRepo
from clinica_juridica.observability.logging import get_logger
from clinica_juridica.services.auditoria import AuditoriaService, RequestMeta, filtros_detalle
from clinica_juridica.services.errors import DatosInvalidos, NoEncontrado, Prohibido
from clinica_juridica.services.notificaciones import NotificacionService
from clinica_juridica.services.numbering import allocate, current_year, next_numero_consulta
from clinica_juridica.services.text import search_terms
from clinica_juridica.services.tramites import TramiteService
from clinica_juridica.settings import Settings
from clinica_juridica.workflow.client import WorkflowClient, WorkflowError

log = get_logger(__name__)

HORA_RE = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")


def _fecha_es(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def _validar_hora(hora: str) -> None:
    if not HORA_RE.match(hora):
        raise DatosInvalidos("Formato de hora inválido. Use formato HH:mm (24 horas)")


class FichaService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        meta: RequestMeta | None = None,
        workflow: WorkflowClient | None = None,
    ) -> None:
        self._session = session
        self._settings = settings
        self._workflow = workflow

        self._fichas = FichaRepo(session)
        self._consultantes = ConsultanteRepo(session)
        self._usuarios = UsuarioRepo(session)
        self._grupos = GrupoRepo(session)
        self._audit = AuditoriaService(session, meta)
        self._notificaciones = NotificacionService(session)
        self._tramites = TramiteService(session=session, settings=settings, meta=meta)

    async def listar(
        self,
        *,
        actor: Usuario,
        estado: FichaEstado | None = None,
        id_docente: int | None = None,
        id_consultante: int | None = None,
        search: str | None = None,
    ) -> list[Ficha]:
        fichas = await self._fichas.list(
            estado=estado,
            id_docente=id_docente,
            id_consultante=id_consultante,
            search_terms=search_terms(search),
        )
        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="ficha",
            accion="listar",
            detalles=filtros_detalle(
                "Listado de fichas consultado",
                {
                    "estado": estado.value if estado else None,
                    "docente": id_docente,
                    "consultante": id_consultante,
                    "búsqueda": search,
                },
            ),
        )
        await self._session.commit()
        return fichas

    async def listar_standby(self) -> list[Ficha]:
        return await self._fichas.list_standby()

    async def obtener(self, *, actor: Usuario, id_ficha: int) -> Ficha:
        ficha = await self._get_or_404(id_ficha)
        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="ficha",
            id_entidad=ficha.id_ficha,
            accion="consultar",
            detalles=(
                f"Ficha consultada: {ficha.numero_consulta} (Estado: {ficha.estado.value}, "
                f"Consultante: {ficha.consultante.usuario.nombre})"
            ),
        )
        await self._session.commit()
        return ficha

    async def crear(
        self,
        *,
        actor: Usuario,
        id_consultante: int | None,
        id_docente: int | None,
        tema_consulta: str | None,
        fecha_cita: date | None = None,
        hora_cita: str | None = None,
        observaciones: str | None = None,
        estado: str | None = None,
        today: date | None = None,
    ) -> Ficha:
        if actor.rol != Rol.administrador or actor.nivel_acceso != NivelAcceso.administrativo:
            raise Prohibido("Solo los administrativos pueden crear fichas")

        # "pendiente" waits for approval; "aprobado" (or nothing) goes straight to standby.
        estado_ficha = FichaEstado.pendiente if estado == "pendiente" else FichaEstado.standby

        hora_cita = hora_cita.strip() if hora_cita and hora_cita.strip() else None
        observaciones = observaciones if observaciones and observaciones.strip() else None

        if not id_consultante or not tema_consulta or not id_docente:
            raise DatosInvalidos("id_consultante, tema_consulta e id_docente son requeridos")
        if estado_ficha != FichaEstado.pendiente and fecha_cita is None:
            raise DatosInvalidos("fecha_cita es requerida para fichas aprobadas")
        if estado_ficha != FichaEstado.pendiente and hora_cita is None:
            raise DatosInvalidos("hora_cita es requerida para fichas aprobadas")
        if hora_cita is not None:
            _validar_hora(hora_cita)

        consultante = await self._consultantes.get(id_consultante)
        if consultante is None:
            raise NoEncontrado("Consultante no encontrado")

        docente = await self._usuarios.get(id_docente)
        if docente is None:
            raise NoEncontrado("Docente no encontrado")
        if docente.rol != Rol.docente:
            raise DatosInvalidos("El usuario especificado no es un docente")

        numero_consulta = await self._asignar_numero_consulta(today=today)

        ficha = await self._fichas.create(
            id_consultante=id_consultante,
            id_docente=id_docente,
            numero_consulta=numero_consulta,
            # Pending fichas without a date keep today's date until approval sets the real one.
            fecha_cita=fecha_cita or (today or date.today()),
            hora_cita=hora_cita,
            tema_consulta=tema_consulta,
            observaciones=observaciones,
            estado=estado_ficha,
        )
        log.info("ficha_creada", numero_consulta=numero_consulta, estado=estado_ficha.value)

        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="ficha",
            id_entidad=ficha.id_ficha,
            accion="crear",
            detalles=(
                f"Ficha creada: {numero_consulta}, estado: {estado_ficha.value}, "
                f"docente: {docente.nombre}"
            ),
        )

        nombre_consultante = consultante.usuario.nombre
        await self._notificaciones.crear(
            id_usuario=id_docente,
            id_usuario_emisor=actor.id_usuario,
            titulo="Nueva ficha asignada",
            mensaje=(
                f"Se te ha asignado una nueva ficha de consulta: {numero_consulta}. "
                f"Consultante: {nombre_consultante}. Tema: {tema_consulta}"
            ),
            tipo=TipoNotificacion.info,
            tipo_entidad="ficha",
            id_entidad=ficha.id_ficha,
        )
        if estado_ficha == FichaEstado.pendiente:
            detalle_cita = "La ficha está pendiente de aprobación."
        else:
            detalle_cita = f"Fecha de cita: {_fecha_es(ficha.fecha_cita)} a las {hora_cita}."
        await self._notificaciones.crear(
            id_usuario=consultante.id_usuario,
            id_usuario_emisor=actor.id_usuario,
            titulo="Ficha de consulta creada",
            mensaje=f"Se ha creado tu ficha de consulta: {numero_consulta}. {detalle_cita}",
            tipo=(
                TipoNotificacion.warning
                if estado_ficha == FichaEstado.pendiente
                else TipoNotificacion.success
            ),
            tipo_entidad="ficha",
            id_entidad=ficha.id_ficha,
        )

        await self._session.commit()
        return await self._get_or_404(ficha.id_ficha)

    async def aprobar(
        self, *, actor: Usuario, id_ficha: int, fecha_cita: date | None, hora_cita: str | None
    ) -> Ficha:
        if actor.rol != Rol.administrador:
            raise Prohibido("Solo los administradores pueden aprobar fichas")
        if fecha_cita is None or not hora_cita:
            raise DatosInvalidos("fecha_cita y hora_cita son requeridas para aprobar una ficha")
        _validar_hora(hora_cita)

        ficha = await self._get_or_404(id_ficha)
        if ficha.estado != FichaEstado.pendiente:
            raise DatosInvalidos(
                f"Solo se pueden aprobar fichas pendientes. Estado actual: {ficha.estado.value}"
            )

        ficha.estado = FichaEstado.standby
        ficha.fecha_cita = fecha_cita
        ficha.hora_cita = hora_cita
        await self._session.flush()
        log.info("ficha_aprobada", id_ficha=id_ficha, fecha_cita=str(fecha_cita), hora_cita=hora_cita)

        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="ficha",
            id_entidad=ficha.id_ficha,
            accion="aprobar",
            detalles=(
                f"Ficha {ficha.numero_consulta} aprobada. "
                f"Fecha: {fecha_cita.isoformat()}, Hora: {hora_cita}"
            ),
        )
        await self._session.commit()
        return await self._get_or_404(id_ficha)

    async def asignar_grupo(self, *, actor: Usuario, id_ficha: int, id_grupo: int | None) -> Ficha:
        if actor.rol != Rol.docente:
            raise Prohibido("Solo los docentes pueden asignar fichas a grupos")
        if not id_grupo:
            raise DatosInvalidos("id_grupo es requerido")

        ficha = await self._get_or_404(id_ficha)
        if ficha.estado != FichaEstado.standby:
            raise DatosInvalidos(
                f'No se puede asignar una ficha en estado "{ficha.estado.value}". '
                'Solo se pueden asignar fichas en estado "standby".'
            )

        grupo = await self._grupos.get(id_grupo)
        if grupo is None:
            raise NoEncontrado("Grupo no encontrado")
        if not grupo.activo:
            raise DatosInvalidos("El grupo no está activo")

        ficha.id_grupo = id_grupo
        ficha.estado = FichaEstado.asignada
        await self._session.flush()
        log.info("ficha_asignada", numero_consulta=ficha.numero_consulta, grupo=grupo.nombre)

        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="ficha",
            id_entidad=ficha.id_ficha,
            accion="asignar",
            detalles=f"Ficha {ficha.numero_consulta} asignada al grupo {grupo.nombre}",
        )

        cita = f"Fecha de cita: {_fecha_es(ficha.fecha_cita)}"
        if ficha.hora_cita:
            cita += f" a las {ficha.hora_cita}"
        await self._notificaciones.crear_para_grupo(
            id_grupo,
            id_usuario_emisor=actor.id_usuario,
            titulo="Nueva ficha asignada a tu grupo",
            mensaje=(
                f"Se ha asignado la ficha de consulta {ficha.numero_consulta} a tu grupo "
                f'"{grupo.nombre}". Consultante: {ficha.consultante.usuario.nombre}. '
                f"Tema: {ficha.tema_consulta}. {cita}."
            ),
            tipo=TipoNotificacion.info,
            tipo_entidad="ficha",
            id_entidad=ficha.id_ficha,
        )

        await self._session.commit()
        return await self._get_or_404(id_ficha)

    async def iniciar_tramite(
        self,
        *,
        actor: Usuario,
        id_ficha: int,
        observaciones: str | None = None,
        today: date | None = None,
    ) -> tuple[Tramite, Ficha]:
        ficha = await self._get_or_404(id_ficha)
        if ficha.estado != FichaEstado.asignada or ficha.id_grupo is None:
            raise DatosInvalidos(
                "La ficha debe estar asignada a un grupo antes de iniciar el trámite"
            )

        es_estudiante_del_grupo = await self._grupos.is_member(
            id_grupo=ficha.id_grupo,
            id_usuario=actor.id_usuario,
            rol_en_grupo=RolEnGrupo.estudiante,
        )
        if not es_estudiante_del_grupo:
            raise Prohibido(
                "Solo los estudiantes del grupo asignado pueden iniciar el trámite desde la ficha"
            )

        num_carpeta = await self._tramites.asignar_num_carpeta(today=today)
        tramite = await self._tramites.repo.create(
            id_consultante=ficha.id_consultante,
            id_grupo=ficha.id_grupo,
            num_carpeta=num_carpeta,
            observaciones=observaciones or ficha.observaciones,
            estado=TramiteEstado.en_tramite,
        )
        ficha.estado = FichaEstado.iniciada
        await self._session.flush()
        log.info(
            "tramite_iniciado",
            numero_consulta=ficha.numero_consulta,
            id_tramite=tramite.id_tramite,
            num_carpeta=num_carpeta,
        )

        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="tramite",
            id_entidad=tramite.id_tramite,
            accion="crear",
            detalles=(
                f"Trámite iniciado desde ficha {ficha.numero_consulta}. "
                f"Número de carpeta: {num_carpeta}"
            ),
        )

        nombre_grupo = ficha.grupo.nombre if ficha.grupo else "grupo asignado"
        await self._notificaciones.crear(
            id_usuario=ficha.consultante.id_usuario,
            id_usuario_emisor=actor.id_usuario,
            titulo="Trámite iniciado desde tu ficha",
            mensaje=(
                f"Se ha iniciado un trámite desde tu ficha de consulta {ficha.numero_consulta}. "
                f"Número de carpeta: {num_carpeta}. Grupo responsable: {nombre_grupo}. "
                "El trámite está ahora en proceso."
            ),
            tipo=TipoNotificacion.success,
            tipo_entidad="tramite",
            id_entidad=tramite.id_tramite,
            id_tramite=tramite.id_tramite,
        )
        await self._session.commit()

        await self._iniciar_proceso(tramite, nombre_grupo=nombre_grupo)

        return (
            await self._tramites.get_or_404(tramite.id_tramite),
            await self._get_or_404(id_ficha),
        )

    async def actualizar(self, *, actor: Usuario, id_ficha: int, cambios: dict[str, Any]) -> Ficha:
        ficha = await self._get_or_404(id_ficha)

        if "id_docente" in cambios:
            docente = await self._usuarios.get(cambios["id_docente"]) if cambios["id_docente"] else None
            if docente is None:
                raise NoEncontrado("Docente no encontrado")
            if docente.rol != Rol.docente:
                raise DatosInvalidos("El usuario especificado no es un docente")
            ficha.id_docente = docente.id_usuario
        if "fecha_cita" in cambios:
            if cambios["fecha_cita"] is None:
                raise DatosInvalidos("Fecha de cita inválida")
            ficha.fecha_cita = cambios["fecha_cita"]
        if "hora_cita" in cambios:
            hora = cambios["hora_cita"] or None
            if hora is not None:
                _validar_hora(hora)
            ficha.hora_cita = hora
        if "tema_consulta" in cambios:
            if not cambios["tema_consulta"]:
                raise DatosInvalidos("tema_consulta no puede estar vacío")
            ficha.tema_consulta = cambios["tema_consulta"]
        if "observaciones" in cambios:
            ficha.observaciones = cambios["observaciones"]
        await self._session.flush()

        etiquetas = {
            "fecha_cita": "fecha de cita",
            "hora_cita": "hora de cita",
            "tema_consulta": "tema de consulta",
            "id_docente": "docente asignado",
            "observaciones": "observaciones",
        }
        campos = [label for key, label in etiquetas.items() if key in cambios]
        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="ficha",
            id_entidad=ficha.id_ficha,
            accion="modificar",
            detalles=(
                f"Ficha {ficha.numero_consulta} modificada. Campos: {', '.join(campos)}"
                if campos
                else f"Ficha {ficha.numero_consulta} actualizada"
            ),
        )
        await self._session.commit()
        return await self._get_or_404(id_ficha)

    async def eliminar(self, *, actor: Usuario, id_ficha: int) -> None:
        ficha = await self._get_or_404(id_ficha)
        if ficha.estado != FichaEstado.standby:
            raise DatosInvalidos(
                f'No se puede eliminar una ficha en estado "{ficha.estado.value}". '
                'Solo se pueden eliminar fichas en estado "standby".'
            )
        numero = ficha.numero_consulta
        await self._fichas.delete(ficha)
        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="ficha",
            id_entidad=id_ficha,
            accion="eliminar",
            detalles=f"Ficha {numero} eliminada",
        )
        await self._session.commit()

    async def _get_or_404(self, id_ficha: int) -> Ficha:
        ficha = await self._fichas.get(id_ficha)
        if ficha is None:
            raise NoEncontrado("Ficha no encontrada")
        return ficha

    async def _asignar_numero_consulta(self, *, today: date | None) -> str:
        year = current_year(today)
        return await allocate(
            kind="consulta",
            scan=lambda: self._fichas.numeros_consulta_del_anio(year),
            compute=lambda existing: next_numero_consulta(existing, year=year),
            exists=self._fichas.numero_consulta_exists,
            max_attempts=self._settings.numbering_max_attempts,
            retry_delay_ms=self._settings.numbering_retry_delay_ms,
        )

    async def _iniciar_proceso(self, tramite: Tramite, *, nombre_grupo: str) -> None:
        if self._workflow is None:
            return
        try:
            result = await self._workflow.iniciar_proceso(
                self._settings.tramite_process_key,
                {
                    "id_tramite": tramite.id_tramite,
                    "id_consultante": tramite.id_consultante,
                    "id_grupo": tramite.id_grupo,
                    "grupoNombre": f"grupo_{nombre_grupo}",
                    "num_carpeta": tramite.num_carpeta,
                    "estado": TramiteEstado.en_tramite.value,
                    "observaciones": tramite.observaciones or "",
                    "validado": True,
                },
            )
        except WorkflowError as e:
            # The trámite stays valid without a process instance.
            log.warning("proceso_no_iniciado", id_tramite=tramite.id_tramite, error=str(e))
            return

        tramite.process_instance_id = result.instance_id
        await self._session.commit()


# --- Module Notes -----------------------------------------------------------
# `today` parameters exist so tests can pin the numbering year.
