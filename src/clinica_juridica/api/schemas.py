"""
clinica_juridica.api.schemas

Response models shared across routers.

Responsibilities:
- Serialize ORM rows (via `from_attributes`) without leaking password hashes.
- Keep nested shapes shallow: summaries for related people and groups.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


class _OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UsuarioResumen(_OrmModel):
    id_usuario: int
    nombre: str
    ci: str
    correo: str
    telefono: str


class GrupoResumen(_OrmModel):
    id_grupo: int
    nombre: str
    activo: bool


class MembresiaOut(_OrmModel):
    id_grupo: int
    rol_en_grupo: str
    grupo: GrupoResumen


class UsuarioOut(_OrmModel):
    id_usuario: int
    nombre: str
    ci: str
    domicilio: str
    telefono: str
    correo: str
    rol: str
    nivel_acceso: int | None = None
    semestre: str | None = None
    activo: bool
    created_at: datetime
    updated_at: datetime


class UsuarioDetalleOut(UsuarioOut):
    grupos_participa: list[MembresiaOut] = []


class MiembroOut(_OrmModel):
    id_usuario: int
    rol_en_grupo: str
    usuario: UsuarioResumen


class GrupoOut(GrupoResumen):
    created_at: datetime
    miembros_grupo: list[MiembroOut] = []


class ConsultanteOut(_OrmModel):
    id_consultante: int
    id_usuario: int
    est_civil: str | None = None
    nro_padron: int | None = None
    usuario: UsuarioResumen


class FichaOut(_OrmModel):
    id_ficha: int
    numero_consulta: str
    id_consultante: int
    id_docente: int
    id_grupo: int | None = None
    fecha_cita: date
    hora_cita: str | None = None
    tema_consulta: str
    observaciones: str | None = None
    estado: str
    created_at: datetime
    updated_at: datetime
    consultante: ConsultanteOut
    docente: UsuarioResumen
    grupo: GrupoResumen | None = None


class TramiteOut(_OrmModel):
    id_tramite: int
    num_carpeta: str
    id_consultante: int
    id_grupo: int
    fecha_inicio: datetime
    estado: str
    observaciones: str | None = None
    fecha_cierre: datetime | None = None
    motivo_cierre: str | None = None
    process_instance_id: str | None = None
    created_at: datetime
    updated_at: datetime
    consultante: ConsultanteOut
    grupo: GrupoResumen


class HojaRutaOut(_OrmModel):
    id_hoja_ruta: int
    id_tramite: int
    id_usuario: int | None = None
    fecha_actuacion: datetime
    descripcion: str
    usuario: UsuarioResumen | None = None


class NotificacionOut(_OrmModel):
    id_notificacion: int
    id_usuario: int
    id_usuario_emisor: int | None = None
    titulo: str
    mensaje: str
    tipo: str
    leida: bool
    tipo_entidad: str | None = None
    id_entidad: int | None = None
    id_tramite: int | None = None
    created_at: datetime


class AuditoriaOut(_OrmModel):
    id_auditoria: int
    id_usuario: int | None = None
    tipo_entidad: str
    id_entidad: int | None = None
    accion: str
    detalles: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime
    usuario: UsuarioResumen | None = None
