"""
clinica_juridica.services.numbering

Sequential, year-scoped identifiers for fichas and trámites.

Responsibilities:
- Compute the next `numero_consulta` (`NN/YYYY`) and `num_carpeta` (`NNN/YY`) from the
  numbers already used this year.
- Allocate a candidate that is not yet taken, retrying a bounded number of times.

Notes:
- This is a scan-and-increment, not an atomic counter: two concurrent requests can compute
  the same candidate. The unique constraints on both columns remain the last line, and a
  violation at insert time surfaces as HTTP 409.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import date

from clinica_juridica.observability.logging import get_logger
from clinica_juridica.services.errors import ErrorInterno

log = get_logger(__name__)


def _max_sequence(existing: Iterable[str], suffix: str) -> int:
    highest = 0
    for value in existing:
        parts = value.split("/")
        if len(parts) != 2 or parts[1] != suffix:
            continue
        try:
            n = int(parts[0], 10)
        except ValueError:
            continue
        if n > highest:
            highest = n
    return highest


def next_numero_consulta(existing: Iterable[str], *, year: int) -> str:
    """
    >>> next_numero_consulta(["01/2025", "07/2025", "99/2024"], year=2025)
    '08/2025'
    """
    suffix = str(year)
    return f"{_max_sequence(existing, suffix) + 1:02d}/{suffix}"


def next_num_carpeta(existing: Iterable[str], *, year: int) -> str:
    """
    >>> next_num_carpeta(["001/25", "010/25"], year=2025)
    '011/25'
    """
    suffix = str(year)[-2:]
    return f"{_max_sequence(existing, suffix) + 1:03d}/{suffix}"


async def allocate(
    *,
    kind: str,
    scan: Callable[[], Awaitable[list[str]]],
    compute: Callable[[list[str]], str],
    exists: Callable[[str], Awaitable[bool]],
    max_attempts: int,
    retry_delay_ms: int,
) -> str:
    for attempt in range(1, max_attempts + 1):
        candidate = compute(await scan())
        if not await exists(candidate):
            return candidate
        log.warning("numbering_collision", kind=kind, candidate=candidate, attempt=attempt)
        if attempt < max_attempts:
            await asyncio.sleep(retry_delay_ms / 1000)

    raise ErrorInterno(
        f"No se pudo generar un número de {kind} único después de varios intentos"
    )


def current_year(today: date | None = None) -> int:
    return (today or date.today()).year


# --- Module Notes -----------------------------------------------------------
# Repositories provide `scan`/`exists`; see FichaService and TramiteService for the wiring.
