"""
clinica_juridica.db.models

Relational schema for the legal-clinic workflow.

Responsibilities:
- Define ORM models for people (Usuario, Consultante), student groups (Grupo, UsuarioGrupo),
  the intake -> case pipeline (Ficha, Tramite, HojaRuta) and the side logs
  (Notificacion, Auditoria).
- Declare the status vocabularies used by inline lifecycle checks in the service layer.
"""

from __future__ import annotations

import enum
from datetime import UTC, date, datetime

from sqlalchemy import Boolean, Date, Enum, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinica_juridica.db.base import Base


def utcnow() -> datetime:
    # Persist naive UTC timestamps.
    return datetime.now(tz=UTC).replace(tzinfo=None)


def _values(enum_cls: type[enum.Enum]) -> list[str]:
    return [m.value for m in enum_cls]


class Rol(enum.StrEnum):
    estudiante = "estudiante"
    docente = "docente"
    consultante = "consultante"
    administrador = "administrador"


class NivelAcceso(enum.IntEnum):
    # Only meaningful for rol=administrador.
    administrativo = 1
    docente = 2
    sistema = 3


class RolEnGrupo(enum.StrEnum):
    estudiante = "estudiante"
    docente = "docente"


class FichaEstado(enum.StrEnum):
    pendiente = "pendiente"
    standby = "standby"
    asignada = "asignada"
    iniciada = "iniciada"


class TramiteEstado(enum.StrEnum):
    en_tramite = "en_tramite"
    finalizado = "finalizado"
    pendiente = "pendiente"
    desistido = "desistido"


class TipoNotificacion(enum.StrEnum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class Usuario(Base):
    __tablename__ = "usuarios"

    id_usuario: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    nombre: Mapped[str] = mapped_column(String(200), nullable=False)
    ci: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    domicilio: Mapped[str] = mapped_column(String(300), nullable=False)
    telefono: Mapped[str] = mapped_column(String(64), nullable=False)
    correo: Mapped[str] = mapped_column(String(254), nullable=False, unique=True)
    password: Mapped[str | None] = mapped_column(String(256), nullable=True)

    rol: Mapped[Rol] = mapped_column(
        Enum(Rol, values_callable=_values, native_enum=False, length=32),
        nullable=False,
        default=Rol.estudiante,
        index=True,
    )
    nivel_acceso: Mapped[int | None] = mapped_column(nullable=True)
    semestre: Mapped[str | None] = mapped_column(String(32), nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    consultantes: Mapped[list[Consultante]] = relationship(back_populates="usuario")
    grupos_participa: Mapped[list[UsuarioGrupo]] = relationship(
        back_populates="usuario", lazy="selectin", cascade="all, delete-orphan"
    )


class Consultante(Base):
    __tablename__ = "consultantes"

    id_consultante: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    id_usuario: Mapped[int] = mapped_column(
        ForeignKey("usuarios.id_usuario"), nullable=False, index=True
    )
    est_civil: Mapped[str | None] = mapped_column(String(32), nullable=True)
    nro_padron: Mapped[int | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    usuario: Mapped[Usuario] = relationship(back_populates="consultantes", lazy="selectin")
    tramites: Mapped[list[Tramite]] = relationship(back_populates="consultante")


class Grupo(Base):
    __tablename__ = "grupos"

    id_grupo: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    nombre: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    miembros_grupo: Mapped[list[UsuarioGrupo]] = relationship(
        back_populates="grupo", lazy="selectin", cascade="all, delete-orphan"
    )
    tramites: Mapped[list[Tramite]] = relationship(back_populates="grupo")


class UsuarioGrupo(Base):
    __tablename__ = "usuarios_grupos"

    id_usuario_grupo: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    id_usuario: Mapped[int] = mapped_column(
        ForeignKey("usuarios.id_usuario"), nullable=False, index=True
    )
    id_grupo: Mapped[int] = mapped_column(ForeignKey("grupos.id_grupo"), nullable=False, index=True)
    rol_en_grupo: Mapped[RolEnGrupo] = mapped_column(
        Enum(RolEnGrupo, values_callable=_values, native_enum=False, length=32),
        nullable=False,
        default=RolEnGrupo.estudiante,
    )

    usuario: Mapped[Usuario] = relationship(back_populates="grupos_participa", lazy="selectin")
    grupo: Mapped[Grupo] = relationship(back_populates="miembros_grupo", lazy="selectin")

    __table_args__ = (UniqueConstraint("id_usuario", "id_grupo", name="uq_usuario_grupo"),)


class Ficha(Base):
    __tablename__ = "fichas"

    id_ficha: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    numero_consulta: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)

    id_consultante: Mapped[int] = mapped_column(
        ForeignKey("consultantes.id_consultante"), nullable=False, index=True
    )
    id_docente: Mapped[int] = mapped_column(
        ForeignKey("usuarios.id_usuario"), nullable=False, index=True
    )
    id_grupo: Mapped[int | None] = mapped_column(
        ForeignKey("grupos.id_grupo"), nullable=True, index=True
    )

    fecha_cita: Mapped[date] = mapped_column(Date, nullable=False)
    hora_cita: Mapped[str | None] = mapped_column(String(5), nullable=True)
    tema_consulta: Mapped[str] = mapped_column(Text, nullable=False)
    observaciones: Mapped[str | None] = mapped_column(Text, nullable=True)

    estado: Mapped[FichaEstado] = mapped_column(
        Enum(FichaEstado, values_callable=_values, native_enum=False, length=16),
        nullable=False,
        default=FichaEstado.standby,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    consultante: Mapped[Consultante] = relationship(lazy="selectin")
    docente: Mapped[Usuario] = relationship(lazy="selectin")
    grupo: Mapped[Grupo | None] = relationship(lazy="selectin")


class Tramite(Base):
    __tablename__ = "tramites"

    id_tramite: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    num_carpeta: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)

    id_consultante: Mapped[int] = mapped_column(
        ForeignKey("consultantes.id_consultante"), nullable=False, index=True
    )
    id_grupo: Mapped[int] = mapped_column(ForeignKey("grupos.id_grupo"), nullable=False, index=True)

    fecha_inicio: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    estado: Mapped[TramiteEstado] = mapped_column(
        Enum(TramiteEstado, values_callable=_values, native_enum=False, length=16),
        nullable=False,
        default=TramiteEstado.en_tramite,
        index=True,
    )
    observaciones: Mapped[str | None] = mapped_column(Text, nullable=True)
    fecha_cierre: Mapped[datetime | None] = mapped_column(nullable=True)
    motivo_cierre: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Engine-side process instance, set once the orchestrator accepted the start request.
    process_instance_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    consultante: Mapped[Consultante] = relationship(back_populates="tramites", lazy="selectin")
    grupo: Mapped[Grupo] = relationship(back_populates="tramites", lazy="selectin")
    hoja_ruta: Mapped[list[HojaRuta]] = relationship(
        back_populates="tramite", order_by="HojaRuta.fecha_actuacion"
    )


class HojaRuta(Base):
    __tablename__ = "hoja_ruta"

    id_hoja_ruta: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    id_tramite: Mapped[int] = mapped_column(
        ForeignKey("tramites.id_tramite"), nullable=False, index=True
    )
    id_usuario: Mapped[int | None] = mapped_column(
        ForeignKey("usuarios.id_usuario"), nullable=True, index=True
    )
    fecha_actuacion: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    descripcion: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    tramite: Mapped[Tramite] = relationship(back_populates="hoja_ruta")
    usuario: Mapped[Usuario | None] = relationship(lazy="selectin")

    __table_args__ = (Index("ix_hoja_ruta_tramite_fecha", "id_tramite", "fecha_actuacion"),)


class Notificacion(Base):
    __tablename__ = "notificaciones"

    id_notificacion: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    id_usuario: Mapped[int] = mapped_column(
        ForeignKey("usuarios.id_usuario"), nullable=False, index=True
    )
    id_usuario_emisor: Mapped[int | None] = mapped_column(
        ForeignKey("usuarios.id_usuario"), nullable=True
    )
    titulo: Mapped[str] = mapped_column(String(200), nullable=False)
    mensaje: Mapped[str] = mapped_column(Text, nullable=False)
    tipo: Mapped[TipoNotificacion] = mapped_column(
        Enum(TipoNotificacion, values_callable=_values, native_enum=False, length=16),
        nullable=False,
        default=TipoNotificacion.info,
    )
    leida: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    tipo_entidad: Mapped[str | None] = mapped_column(String(32), nullable=True)
    id_entidad: Mapped[int | None] = mapped_column(nullable=True)
    id_tramite: Mapped[int | None] = mapped_column(
        ForeignKey("tramites.id_tramite"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)


class Auditoria(Base):
    __tablename__ = "auditorias"

    id_auditoria: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Null for service identities (e.g. the orchestrator).
    id_usuario: Mapped[int | None] = mapped_column(
        ForeignKey("usuarios.id_usuario"), nullable=True, index=True
    )
    tipo_entidad: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    id_entidad: Mapped[int | None] = mapped_column(nullable=True)
    accion: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    detalles: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    usuario: Mapped[Usuario | None] = relationship(lazy="selectin")

    __table_args__ = (Index("ix_auditorias_entidad", "tipo_entidad", "id_entidad"),)


# --- Module Notes -----------------------------------------------------------
# Display relationships load eagerly (selectin) because async sessions cannot lazy-load
# on attribute access; collections that can grow (Grupo.tramites, Tramite.hoja_ruta)
# stay lazy and are always queried explicitly through repositories.
