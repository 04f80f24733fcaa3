from __future__ import annotations
from datetime import datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from garagepos.time_utils import parse_iso_date, parse_iso_datetime


# Maximum money amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

# Placeholder phone the till uses for walk-in customers
UNRESOLVED_PHONES = {"", "-"}


class ServiceError(Exception):
    """Base for business errors surfaced to the caller."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "details": self.details}


class ValidationError(ServiceError):
    """400-level input problem. Detected before any mutation."""
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """409-level business rule conflict (e.g., day already open)."""
    status_code = 409


class PersistenceError(ServiceError):
    """Store failure; the unit of work was rolled back."""
    status_code = 500


class SideEffectFailure(ServiceError):
    """
    Journal/backup/notification failure.

    Never rolls back the business transaction that triggered it.
    """
    status_code = 502


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def coerce_cents(value: Any, field: str, *, allow_zero: bool = True, default: int | None = None) -> int:
    """
    Validate a money amount in cents.

    Negative amounts are always rejected; zero only when allow_zero.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ValidationError(f"{field} is required")
    cents = _coerce_int(field, value)
    if cents < 0 or (cents == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return cents


def coerce_int(value: Any, field: str) -> int:
    return _coerce_int(field, value)


def coerce_quantity(value: Any, field: str = "qty") -> int:
    qty = _coerce_int(field, value)
    if qty <= 0:
        raise ValidationError(f"{field} must be > 0")
    return qty


def enforce_rules_item(patch: dict) -> None:
    """Business rules for inventory items not captured by column metadata."""
    for key in ("price_cents", "buying_price_cents"):
        if key in patch and patch[key] is not None:
            if patch[key] < 0:
                raise ValidationError(f"{key} must be >= 0")
            if patch[key] > MAX_AMOUNT_CENTS:
                raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_CENTS}")
    if "stock" in patch and patch["stock"] is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")


def normalize_vehicle_no(value: str | None) -> str:
    return (value or "").strip().upper()


def resolve_phone(value: str | None) -> str | None:
    """Return the trimmed phone, or None for walk-in placeholders."""
    phone = (value or "").strip()
    if phone in UNRESOLVED_PHONES:
        return None
    return phone


def parse_date_arg(value: str | None, field: str):
    """Query-string date "YYYY-MM-DD"; None when absent."""
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be YYYY-MM-DD")
