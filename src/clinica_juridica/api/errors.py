"""
clinica_juridica.api.errors

Exception handlers mapping domain and persistence errors to JSON responses.

All error bodies share the FastAPI shape: `{"detail": "<mensaje>"}`.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_409_CONFLICT

from clinica_juridica.observability.logging import get_logger
from clinica_juridica.services.errors import ClinicaError

log = get_logger(__name__)


async def _clinica_error(_: Request, exc: ClinicaError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("clinica_error", detail=exc.message, status=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, **exc.extra})


async def _integrity_error(_: Request, exc: IntegrityError) -> JSONResponse:
    log.warning("integrity_error", error=str(exc.orig))
    return JSONResponse(
        status_code=HTTP_409_CONFLICT,
        content={"detail": "El registro entra en conflicto con uno existente"},
    )


async def _validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies/params are client errors like any other failed check.
    campos = sorted({".".join(str(p) for p in e["loc"][1:]) for e in exc.errors() if e.get("loc")})
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content={"detail": "Datos inválidos", "campos": [c for c in campos if c]},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ClinicaError, _clinica_error)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error)  # type: ignore[arg-type]
