"""
clinica_juridica.services.errors

Domain errors raised by the service layer.

Each subclass carries the HTTP status it maps to; messages are user-facing (Spanish).
"""

from __future__ import annotations

from typing import Any


class ClinicaError(Exception):
    status_code: int = 500

    def __init__(self, message: str, *, extra: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class DatosInvalidos(ClinicaError):
    status_code = 400


class NoAutenticado(ClinicaError):
    status_code = 401


class Prohibido(ClinicaError):
    status_code = 403


class NoEncontrado(ClinicaError):
    status_code = 404


class Conflicto(ClinicaError):
    status_code = 409


class ErrorInterno(ClinicaError):
    status_code = 500
