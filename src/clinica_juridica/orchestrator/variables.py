"""
clinica_juridica.orchestrator.variables

Typed process variables as exchanged with the engine REST API.

The engine wraps every variable as `{"value": ..., "type": ...}`. Plain JSON values from
the backend are encoded on the way in and decoded on the way out.
"""

from __future__ import annotations

import json
from typing import Any

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


def encode_value(value: Any) -> dict[str, Any]:
    """
    >>> encode_value(7)
    {'value': 7, 'type': 'Integer'}
    >>> encode_value({"a": 1})
    {'value': '{"a": 1}', 'type': 'Json'}
    """
    # bool before int: bool is an int subclass.
    if value is None:
        return {"value": None, "type": "Null"}
    if isinstance(value, bool):
        return {"value": value, "type": "Boolean"}
    if isinstance(value, int):
        kind = "Integer" if _INT32_MIN <= value <= _INT32_MAX else "Long"
        return {"value": value, "type": kind}
    if isinstance(value, float):
        return {"value": value, "type": "Double"}
    if isinstance(value, str):
        return {"value": value, "type": "String"}
    return {"value": json.dumps(value, ensure_ascii=False), "type": "Json"}


def encode_variables(variables: dict[str, Any] | None) -> dict[str, dict[str, Any]]:
    return {name: encode_value(value) for name, value in (variables or {}).items()}


def decode_value(typed: dict[str, Any]) -> Any:
    kind = str(typed.get("type") or "").lower()
    value = typed.get("value")
    if kind == "json" and isinstance(value, str):
        return json.loads(value)
    if kind in ("integer", "long", "short") and isinstance(value, str):
        return int(value)
    if kind == "double" and isinstance(value, str):
        return float(value)
    if kind == "boolean" and isinstance(value, str):
        return value.lower() == "true"
    return value


def decode_variables(typed: dict[str, dict[str, Any]] | None) -> dict[str, Any]:
    return {name: decode_value(v) for name, v in (typed or {}).items()}
