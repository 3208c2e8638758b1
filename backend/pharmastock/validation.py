from __future__ import annotations
from datetime import date, datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime, Date, Enum
from sqlalchemy.orm import DeclarativeMeta

from .exceptions import ValidationError
from .models import MEDICATION_UNITS, ADJUSTMENT_TYPES, MovementType
from .time_utils import parse_iso_datetime, parse_iso_date


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Largest single movement accepted in one request
MAX_MOVEMENT_QUANTITY = 1_000_000


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


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer", field=col.key)
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(
                    f"{col.key} must be a plain integer (scientific notation not allowed)", field=col.key
                )
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)", field=col.key)
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer", field=col.key)
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal", field=col.key)
        raise ValidationError(f"{col.key} must be an integer", field=col.key)

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
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
            return dt
        raise ValidationError(f"{col.key} must be a datetime", field=col.key)

    # Dates ("YYYY-MM-DD" or a full ISO datetime, truncated to its UTC date)
    if isinstance(coltype, Date):
        if isinstance(value, (date, str)):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date", field=col.key)
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date", field=col.key)
            return d
        raise ValidationError(f"{col.key} must be a date", field=col.key)

    # Enum columns are String subclasses, so check them first
    if isinstance(coltype, Enum) and coltype.enum_class is MovementType:
        return MovementType.parse(value, field=col.key)

    # Strings / Text
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

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", field=k)
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", field=k)

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", field=k)
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", field=k)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", field=k)

        patch[k] = val

    return patch


# =============================================================================
# Field checks shared by routes and services
# =============================================================================

def check_quantity(quantity, field: str = "quantity") -> int:
    """Unsigned movement magnitude: a plain int, > 0."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"{field} must be an integer", field=field)
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than 0", field=field)
    if quantity > MAX_MOVEMENT_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_MOVEMENT_QUANTITY}", field=field)
    return quantity


def check_price_cents(price_cents, field: str = "unit_price_cents") -> int:
    if isinstance(price_cents, bool) or not isinstance(price_cents, int):
        raise ValidationError(f"{field} must be an integer number of cents", field=field)
    if price_cents < 0:
        raise ValidationError("Unit price cannot be negative", field=field)
    if price_cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}", field=field)
    return price_cents


def check_required_text(value, field: str, max_length: int = 255) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"{field} is required", field=field)
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}", field=field)
    return text


def check_optional_text(value, field: str, max_length: int = 255) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}", field=field)
    return text


def check_future_expiry(expiry_date, as_of: date, field: str = "expiry_date") -> date:
    """Expiry must be strictly after the current day (today itself is rejected)."""
    try:
        expiry = parse_iso_date(expiry_date)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date", field=field)
    if expiry is None:
        raise ValidationError(f"{field} is required", field=field)
    if expiry <= as_of:
        raise ValidationError("Expiry date must be in the future", field=field)
    return expiry


def check_adjustment_type(value, field: str = "type") -> MovementType:
    kind = MovementType.parse(value, field=field)
    if kind not in ADJUSTMENT_TYPES:
        raise ValidationError("Invalid adjustment type", field=field)
    return kind


# =============================================================================
# Per-payload business rules (called by routes after validate_payload)
# =============================================================================

def enforce_rules_medication(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "unit" in patch and patch["unit"] not in MEDICATION_UNITS:
        raise ValidationError(f"unit must be one of: {', '.join(MEDICATION_UNITS)}", field="unit")

    if "price_cents" in patch and patch["price_cents"] is not None:
        check_price_cents(patch["price_cents"], field="price_cents")

    if "low_stock_threshold" in patch and patch["low_stock_threshold"] is not None:
        if patch["low_stock_threshold"] < 0:
            raise ValidationError("low_stock_threshold must be >= 0", field="low_stock_threshold")

    if "quantity" in patch and patch["quantity"] is not None:
        if patch["quantity"] < 0:
            raise ValidationError("quantity must be >= 0", field="quantity")


def enforce_rules_sale(patch: dict) -> None:
    check_quantity(patch.get("quantity"))
    # unit_price_cents is optional; defaults to the medication's price
    if patch.get("unit_price_cents") is not None:
        check_price_cents(patch["unit_price_cents"])


def enforce_rules_purchase(patch: dict, as_of: date) -> None:
    check_quantity(patch.get("quantity"))
    check_price_cents(patch.get("unit_price_cents"))
    check_future_expiry(patch.get("expiry_date"), as_of)


def enforce_rules_adjustment(patch: dict) -> None:
    check_adjustment_type(patch.get("type"))
    check_quantity(patch.get("quantity"))
    check_required_text(patch.get("reason"), "reason")
