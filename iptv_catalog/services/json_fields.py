"""
Loose JSON field access.

Provider payloads type the same field differently (``"stream_id": "12"`` vs
``"stream_id": 12``). These helpers resolve a field with a fixed coercion
order: string, then integer rendered as string, then float rendered as string.
Both the category and the channel extraction go through here.
"""
from typing import Any, Optional


def as_string(value: Any) -> Optional[str]:
    """Coerce a JSON scalar to a non-empty string, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(value)
    return None


def as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def as_string_list(value: Any) -> Optional[list[str]]:
    """Ordered list of strings; empty lists become None."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return None
    items = [s for s in (as_string(item) for item in value) if s is not None]
    return items or None


def first_string(record: dict, *keys: str) -> Optional[str]:
    """First key whose value coerces to a string."""
    for key in keys:
        value = as_string(record.get(key))
        if value is not None:
            return value
    return None
