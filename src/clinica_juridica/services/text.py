from __future__ import annotations

import unicodedata


def normalize_text(value: str) -> str:
    """Strip diacritics so "Pérez" also matches rows stored as "Perez"."""
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def search_terms(raw: str | None) -> list[str]:
    if raw is None or not raw.strip():
        return []
    term = raw.strip()
    return list(dict.fromkeys([term, normalize_text(term)]))
