"""
clinica_juridica.auth.models

Auth domain models.
"""

from __future__ import annotations

from dataclasses import dataclass

SERVICE_ROLE = "sistema"


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity as carried by the access token.

    `id_usuario` is None for service identities (the orchestrator).
    """

    subject: str
    rol: str
    id_usuario: int | None = None
    ci: str | None = None
    nivel_acceso: int | None = None

    @property
    def is_service(self) -> bool:
        return self.rol == SERVICE_ROLE
