"""
tests.test_numbering

Sequential identifier formatting and bounded allocation.
"""

from __future__ import annotations

from datetime import date

import pytest

from clinica_juridica.services.errors import ErrorInterno
from clinica_juridica.services.numbering import (
    allocate,
    current_year,
    next_num_carpeta,
    next_numero_consulta,
)


def test_numero_consulta_starts_at_one_each_year() -> None:
    assert next_numero_consulta([], year=2025) == "01/2025"
    assert next_numero_consulta(["14/2024", "03/2024"], year=2025) == "01/2025"


def test_numero_consulta_takes_max_plus_one_and_ignores_malformed() -> None:
    existing = ["01/2025", "09/2025", "abc/2025", "10/20255", "7", "02/2025"]
    assert next_numero_consulta(existing, year=2025) == "10/2025"


def test_numero_consulta_grows_past_two_digits() -> None:
    assert next_numero_consulta(["99/2025"], year=2025) == "100/2025"


def test_num_carpeta_uses_two_digit_year_and_three_digit_sequence() -> None:
    assert next_num_carpeta([], year=2025) == "001/25"
    assert next_num_carpeta(["001/25", "012/25", "050/24", "x/25"], year=2025) == "013/25"


def test_current_year_uses_given_date() -> None:
    assert current_year(date(2031, 1, 2)) == 2031


@pytest.mark.asyncio
async def test_allocate_retries_until_candidate_is_free() -> None:
    taken = {"01/2025", "02/2025"}
    scans: list[list[str]] = [[], ["01/2025"], ["01/2025", "02/2025"]]

    async def scan() -> list[str]:
        return scans.pop(0)

    async def exists(candidate: str) -> bool:
        return candidate in taken

    result = await allocate(
        kind="consulta",
        scan=scan,
        compute=lambda existing: next_numero_consulta(existing, year=2025),
        exists=exists,
        max_attempts=10,
        retry_delay_ms=0,
    )
    assert result == "03/2025"


@pytest.mark.asyncio
async def test_allocate_gives_up_after_max_attempts() -> None:
    calls = 0

    async def scan() -> list[str]:
        nonlocal calls
        calls += 1
        return []

    async def exists(candidate: str) -> bool:
        return True

    with pytest.raises(ErrorInterno) as exc:
        await allocate(
            kind="carpeta",
            scan=scan,
            compute=lambda existing: next_num_carpeta(existing, year=2025),
            exists=exists,
            max_attempts=3,
            retry_delay_ms=0,
        )
    assert calls == 3
    assert exc.value.status_code == 500
    assert "carpeta" in exc.value.message
