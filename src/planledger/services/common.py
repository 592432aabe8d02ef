# src/planledger/services/common.py
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Optional, TypeVar

from planledger.exceptions import ValidationError

E = TypeVar("E", bound=enum.Enum)


def require_text(value: Optional[str], field: str, code: Optional[str] = None) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required", code, {"field": field})
    return text


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip; empty strings become None."""
    if value is None:
        return None
    text = value.strip()
    return text or None


def coerce_enum(enum_cls: type[E], value: Any, field: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid {field}",
            details={"field": field, "value": str(value), "allowed": [m.value for m in enum_cls]},
            cause=exc,
        ) from exc


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
