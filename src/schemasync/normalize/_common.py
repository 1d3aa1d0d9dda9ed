"""Coercion helpers shared by the JSON normalizers.

The completion service has no field-level shape contract, so every accessor
here accepts anything and returns a value of the expected kind.
"""

from __future__ import annotations

from typing import Any


def as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list:
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return []


def as_str(value: Any, default: str = "") -> str:
    if value is None or isinstance(value, (dict, list)):
        return default
    if isinstance(value, bool):
        return default
    text = str(value).strip()
    return text or default


def as_str_list(value: Any) -> list[str]:
    """A list of strings; a bare string becomes a one-item list."""
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [as_str(v) for v in as_list(value) if as_str(v)]


def as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0", ""):
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def as_number(value: Any) -> int | float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value) if "." in value else int(value)
        except ValueError:
            return None
    return None


def as_int(value: Any, default: int | None = None) -> int | None:
    number = as_number(value)
    if number is None:
        return default
    try:
        return int(number)
    except (ValueError, OverflowError):
        return default


def first_of(data: dict, *keys: str, default: Any = None) -> Any:
    """First present, non-empty value among ``keys``."""
    for key in keys:
        value = data.get(key)
        if value is not None and value != "" and value != []:
            return value
    return default
