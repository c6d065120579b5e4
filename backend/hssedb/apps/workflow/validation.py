from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from ...utils.dates import as_utc
from .errors import DomainValidationError


def require_text(value: Optional[str], field: str, *, label: Optional[str] = None) -> str:
    if value is None or not str(value).strip():
        raise DomainValidationError(f"{label or field.replace('_', ' ').capitalize()} is required", field=field)
    return str(value).strip()


def optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def require_actor(actor: Any, field: str = "actor") -> str:
    if actor is None or not str(actor).strip():
        raise DomainValidationError("Acting user is required", field=field)
    return str(actor).strip()


def require_range(value: Any, field: str, *, minimum: float, maximum: Optional[float] = None) -> Any:
    if value is None:
        raise DomainValidationError(f"{field} is required", field=field)
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f"between {minimum} and {maximum}" if maximum is not None else f"at least {minimum}"
        raise DomainValidationError(f"{field} must be {bounds}", field=field)
    return value


def require_future(value: Optional[datetime], field: str, *, now: datetime) -> datetime:
    if value is None:
        raise DomainValidationError(f"{field} is required", field=field)
    value = as_utc(value)
    if value <= now:
        raise DomainValidationError(f"{field} must be in the future", field=field)
    return value


def require_not_future(value: Optional[datetime], field: str, *, now: datetime) -> datetime:
    if value is None:
        raise DomainValidationError(f"{field} is required", field=field)
    value = as_utc(value)
    if value > now:
        raise DomainValidationError(f"{field} cannot be in the future", field=field)
    return value


def require_enum(enum_cls, value: Any, field: str):
    try:
        return value if isinstance(value, enum_cls) else enum_cls(value)
    except ValueError:
        raise DomainValidationError(f"Unsupported {field}: {value}", field=field) from None
