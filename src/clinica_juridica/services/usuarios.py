"""
clinica_juridica.services.usuarios

User management service.

Responsibilities:
- Create and update users with role/access-level validation.
- Activate and deactivate accounts (deactivation blocked while the user has open cases).
- Record a change-tracking audit line for every mutation.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinica_juridica.auth.passwords import hash_password
from clinica_juridica.db.models import NivelAcceso, Rol, RolEnGrupo, Usuario
from clinica_juridica.db.repositories.grupos import GrupoRepo
from clinica_juridica.db.repositories.usuarios import UsuarioRepo
from clinica_juridica.observability.logging import get_logger
from clinica_juridica.services.auditoria import AuditoriaService, RequestMeta, filtros_detalle
from clinica_juridica.services.errors import Conflicto, DatosInvalidos, NoEncontrado, Prohibido

log = get_logger(__name__)

MIN_PASSWORD = 6
NIVELES_ADMIN = frozenset({NivelAcceso.administrativo, NivelAcceso.sistema})
REQUERIDOS = ("nombre", "ci", "domicilio", "telefono", "correo")


def _parse_rol(raw: str | None) -> Rol:
    try:
        return Rol(raw) if raw else Rol.estudiante
    except ValueError as e:
        validos = ", ".join(m.value for m in Rol)
        raise DatosInvalidos(f"Rol inválido. Debe ser uno de: {validos}") from e


def _validar_rol(
    rol: Rol, *, nivel_acceso: int | None, semestre: str | None, exigir_semestre: bool = True
) -> None:
    if rol == Rol.administrador and nivel_acceso not in NIVELES_ADMIN:
        raise DatosInvalidos(
            "Los administradores requieren nivel_acceso 1 (administrativo) o 3 (sistema)"
        )
    if rol == Rol.estudiante and exigir_semestre and not semestre:
        raise DatosInvalidos("El semestre es requerido para estudiantes")


class UsuarioService:
    def __init__(self, *, session: AsyncSession, meta: RequestMeta | None = None) -> None:
        self._session = session
        self._repo = UsuarioRepo(session)
        self._grupos = GrupoRepo(session)
        self._audit = AuditoriaService(session, meta)

    async def listar(
        self,
        *,
        actor: Usuario,
        rol: Rol | None = None,
        activo: bool | None = None,
        search: str | None = None,
    ) -> list[Usuario]:
        usuarios = await self._repo.list(rol=rol, activo=activo, search=search)
        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="usuario",
            accion="listar",
            detalles=filtros_detalle(
                "Listado de usuarios consultado",
                {"rol": rol.value if rol else None, "activo": activo, "búsqueda": search},
            ),
        )
        await self._session.commit()
        return usuarios

    async def obtener(self, *, actor: Usuario, id_usuario: int) -> Usuario:
        usuario = await self._get_or_404(id_usuario)
        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="usuario",
            id_entidad=usuario.id_usuario,
            accion="consultar",
            detalles=f"Usuario consultado: {usuario.nombre} (CI: {usuario.ci})",
        )
        await self._session.commit()
        return usuario

    async def crear(self, *, actor: Usuario, datos: dict[str, Any]) -> Usuario:
        _exigir_admin(actor)
        faltantes = [campo for campo in (*REQUERIDOS, "password") if not datos.get(campo)]
        if faltantes:
            raise DatosInvalidos(f"Campos requeridos: {', '.join(faltantes)}")
        if len(datos["password"]) < MIN_PASSWORD:
            raise DatosInvalidos(
                f"La contraseña debe tener al menos {MIN_PASSWORD} caracteres"
            )

        rol = _parse_rol(datos.get("rol"))
        nivel_acceso = datos.get("nivel_acceso") if rol == Rol.administrador else None
        semestre = datos.get("semestre") if rol == Rol.estudiante else None
        # An omitted rol defaults to estudiante without demanding a semestre.
        _validar_rol(
            rol,
            nivel_acceso=nivel_acceso,
            semestre=semestre,
            exigir_semestre=bool(datos.get("rol")),
        )

        id_grupo = datos.get("id_grupo")
        if id_grupo is not None and rol == Rol.estudiante:
            grupo = await self._grupos.get(id_grupo)
            if grupo is None:
                raise NoEncontrado("Grupo no encontrado")

        if await self._repo.get_by_ci(datos["ci"]) is not None:
            raise Conflicto("Ya existe un usuario con ese CI")

        try:
            usuario = await self._repo.create(
                nombre=datos["nombre"],
                ci=datos["ci"],
                domicilio=datos["domicilio"],
                telefono=datos["telefono"],
                correo=datos["correo"],
                password=hash_password(datos["password"]),
                rol=rol,
                nivel_acceso=nivel_acceso,
                semestre=semestre,
                activo=True,
            )
        except IntegrityError as e:
            await self._session.rollback()
            raise Conflicto("Ya existe un usuario con ese CI o correo") from e

        if id_grupo is not None and rol == Rol.estudiante:
            await self._grupos.add_member(
                id_grupo=id_grupo, id_usuario=usuario.id_usuario, rol_en_grupo=RolEnGrupo.estudiante
            )

        log.info("usuario_creado", id_usuario=usuario.id_usuario, rol=rol.value)
        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="usuario",
            id_entidad=usuario.id_usuario,
            accion="crear",
            detalles=f"Usuario creado: {usuario.nombre} (CI: {usuario.ci}, rol: {rol.value})",
        )
        await self._session.commit()
        return await self._get_or_404(usuario.id_usuario)

    async def actualizar(
        self, *, actor: Usuario, id_usuario: int, cambios: dict[str, Any]
    ) -> Usuario:
        _exigir_admin(actor)
        usuario = await self._get_or_404(id_usuario)

        if "ci" in cambios and cambios["ci"] and cambios["ci"] != usuario.ci:
            if await self._repo.get_by_ci(cambios["ci"]) is not None:
                raise Conflicto("Ya existe un usuario con ese CI")

        rol = _parse_rol(cambios["rol"]) if cambios.get("rol") else usuario.rol
        nivel_acceso = cambios.get("nivel_acceso", usuario.nivel_acceso)
        semestre = cambios.get("semestre", usuario.semestre)
        if rol != Rol.administrador:
            nivel_acceso = None
        if rol != Rol.estudiante:
            semestre = None
        if cambios.keys() & {"rol", "nivel_acceso", "semestre"}:
            _validar_rol(rol, nivel_acceso=nivel_acceso, semestre=semestre)

        nuevos: dict[str, Any] = {
            campo: cambios[campo]
            for campo in REQUERIDOS
            if campo in cambios and cambios[campo]
        }
        nuevos.update(rol=rol, nivel_acceso=nivel_acceso, semestre=semestre)
        if "activo" in cambios and cambios["activo"] is not None:
            nuevos["activo"] = bool(cambios["activo"])

        diffs: list[str] = []
        for campo, valor in nuevos.items():
            anterior = getattr(usuario, campo)
            if anterior != valor:
                diffs.append(f"{campo}: {_fmt(anterior)} → {_fmt(valor)}")
                setattr(usuario, campo, valor)

        if cambios.get("password"):
            if len(cambios["password"]) < MIN_PASSWORD:
                raise DatosInvalidos(
                    f"La contraseña debe tener al menos {MIN_PASSWORD} caracteres"
                )
            usuario.password = hash_password(cambios["password"])
            diffs.append("password: actualizada")

        try:
            await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise Conflicto("Ya existe un usuario con ese CI o correo") from e

        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="usuario",
            id_entidad=usuario.id_usuario,
            accion="modificar",
            detalles=(
                f"Usuario {usuario.nombre} modificado. Cambios: {'; '.join(diffs)}"
                if diffs
                else f"Usuario {usuario.nombre} actualizado sin cambios"
            ),
        )
        await self._session.commit()
        return await self._get_or_404(id_usuario)

    async def activar(self, *, actor: Usuario, id_usuario: int) -> Usuario:
        _exigir_admin(actor)
        usuario = await self._get_or_404(id_usuario)
        usuario.activo = True
        await self._session.flush()
        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="usuario",
            id_entidad=usuario.id_usuario,
            accion="activar",
            detalles=f"Usuario activado: {usuario.nombre} (CI: {usuario.ci})",
        )
        await self._session.commit()
        return await self._get_or_404(id_usuario)

    async def desactivar(self, *, actor: Usuario, id_usuario: int) -> Usuario:
        _exigir_admin(actor)
        usuario = await self._get_or_404(id_usuario)

        activos = await self._repo.tramites_activos(id_usuario)
        if activos:
            raise DatosInvalidos(
                "No se puede desactivar un usuario con trámites activos",
                extra={"tramites_activos": len(activos)},
            )

        usuario.activo = False
        await self._session.flush()
        log.info("usuario_desactivado", id_usuario=id_usuario)
        await self._audit.registrar(
            id_usuario=actor.id_usuario,
            tipo_entidad="usuario",
            id_entidad=usuario.id_usuario,
            accion="desactivar",
            detalles=f"Usuario desactivado: {usuario.nombre} (CI: {usuario.ci})",
        )
        await self._session.commit()
        return await self._get_or_404(id_usuario)

    async def _get_or_404(self, id_usuario: int) -> Usuario:
        usuario = await self._repo.get(id_usuario)
        if usuario is None:
            raise NoEncontrado("Usuario no encontrado")
        return usuario


def _exigir_admin(actor: Usuario) -> None:
    if actor.rol != Rol.administrador:
        raise Prohibido("Solo los administradores pueden gestionar usuarios")


def _fmt(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, Rol):
        return value.value
    return str(value)
