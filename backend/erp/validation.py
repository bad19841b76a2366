from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from erp.time_utils import parse_iso_date, parse_iso_datetime


# Largest amount a DECIMAL(15, 2) column can hold.
MAX_AMOUNT = Decimal("9999999999999.99")

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PHONE_PATTERN = r"^[0-9\-+\s()]+$"
BUSINESS_NUMBER_PATTERN = r"^\d{3}-\d{2}-\d{5}$"

INVALID_INPUT_MESSAGE = "입력 정보를 확인해주세요."


class ValidationError(ValueError):
    """400-level input problem. `errors` holds one message per offending field."""

    def __init__(self, message: str = INVALID_INPUT_MESSAGE, errors: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors) if errors else []


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate business number)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: API (camelCase) names clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - strip_unknown: drop non-writable keys instead of rejecting the payload
    - choices: enum membership per field
    - patterns: regex per string field
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    strip_unknown: bool = False
    choices: dict[str, set[str]] = field(default_factory=dict)
    patterns: dict[str, str] = field(default_factory=dict)


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def to_column_key(api_name: str) -> str:
    """customerCode -> customer_code"""
    return _CAMEL_RE.sub("_", api_name).lower()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(errors=[f"{name} must be a number"])
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise ValidationError(errors=[f"{name} must be a finite number"])
    try:
        result = Decimal(str(value).strip().replace(",", ""))
    except InvalidOperation:
        raise ValidationError(errors=[f"{name} must be a number"])
    if not result.is_finite():
        raise ValidationError(errors=[f"{name} must be a finite number"])
    if abs(result) > MAX_AMOUNT:
        raise ValidationError(errors=[f"{name} is out of range"])
    return result


def _coerce_value(name: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or not re.fullmatch(r"-?\d+", stripped):
                raise ValidationError(errors=[f"{name} must be an integer"])
            return int(stripped)
        raise ValidationError(errors=[f"{name} must be an integer"])

    if isinstance(coltype, Numeric):
        return _coerce_decimal(name, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "y", "yes")
        return bool(value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(errors=[f"{name} must be an ISO-8601 datetime"])
            if dt is None:
                raise ValidationError(errors=[f"{name} must be an ISO-8601 datetime"])
            return dt
        raise ValidationError(errors=[f"{name} must be a datetime"])

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return parse_iso_date(value)
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(errors=[f"{name} must be an ISO-8601 date"])
            if d is None:
                raise ValidationError(errors=[f"{name} must be an ISO-8601 date"])
            return d
        raise ValidationError(errors=[f"{name} must be a date"])

    if isinstance(coltype, JSON):
        return value

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(errors=[f"{name} must be a string"])
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
    - a policy allowlist (writable_fields), enum choices and regex patterns
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by column key, with only writable fields.

    All field problems are collected and raised together so the client can
    highlight every bad input at once.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError(errors=["Invalid JSON payload"])

    errors: list[str] = []

    if not partial:
        for name in sorted(policy.required_on_create):
            raw = payload.get(name)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                errors.append(f"{name} is required")

    cols = _columns_by_key(model)
    patch: dict = {}

    for name, raw in payload.items():
        if name not in policy.writable_fields:
            if policy.strip_unknown:
                continue
            errors.append(f"Field not allowed: {name}")
            continue
        key = to_column_key(name)
        col = cols.get(key)
        if col is None:
            errors.append(f"Unknown field: {name}")
            continue

        # Blank strings on optional text columns mean "clear the value"
        if isinstance(raw, str) and not raw.strip() and col.nullable:
            raw = None

        if raw is None:
            if not col.nullable:
                if name not in policy.required_on_create or partial:
                    errors.append(f"{name} cannot be null")
                continue
            patch[key] = None
            continue

        try:
            val = _coerce_value(name, col, raw)
        except ValidationError as e:
            errors.extend(e.errors)
            continue

        if isinstance(col.type, (String, Text)) and isinstance(val, str):
            if not col.nullable and val == "":
                if name not in policy.required_on_create or partial:
                    errors.append(f"{name} cannot be blank")
                continue
            if isinstance(col.type, String) and col.type.length and len(val) > col.type.length:
                errors.append(f"{name} exceeds max length {col.type.length}")
                continue
            pattern = policy.patterns.get(name)
            if pattern and not re.fullmatch(pattern, val):
                errors.append(f"{name} has an invalid format")
                continue

        allowed = policy.choices.get(name)
        if allowed is not None and val not in allowed:
            errors.append(f"{name} must be one of: {', '.join(sorted(allowed))}")
            continue

        patch[key] = val

    if errors:
        raise ValidationError(errors=errors)
    return patch


def enforce_non_negative(patch: dict, *keys: str) -> None:
    """Amount columns (already Decimal) must be >= 0."""
    errors = [
        f"{key} must be >= 0"
        for key in keys
        if patch.get(key) is not None and patch[key] < 0
    ]
    if errors:
        raise ValidationError(errors=errors)


def normalize_business_number(value: str | None) -> str | None:
    """Store business numbers as 10 bare digits."""
    if value is None:
        return None
    digits = re.sub(r"[^0-9]", "", value)
    return digits or None


def enforce_rules_customer(patch: dict) -> None:
    if "business_number" in patch and patch["business_number"]:
        digits = normalize_business_number(patch["business_number"])
        if not digits or len(digits) != 10:
            raise ValidationError(errors=["businessNumber must be 10 digits"])
        patch["business_number"] = digits
    if patch.get("email") and not re.fullmatch(EMAIL_PATTERN, patch["email"]):
        raise ValidationError(errors=["email must be a valid email"])


def enforce_rules_product(patch: dict) -> None:
    enforce_non_negative(patch, "buy_price", "sell_price")
    if "current_stock" in patch and patch["current_stock"] is not None and patch["current_stock"] < 0:
        raise ValidationError(errors=["currentStock must be >= 0"])


def parse_decimal(name: str, value: Any, *, minimum: Decimal | None = None, maximum: Decimal | None = None) -> Decimal:
    """Number from JSON input as Decimal. Raises ValidationError naming the field."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(errors=[f"{name} is required"])
    result = _coerce_decimal(name, value)
    if minimum is not None and result < minimum:
        raise ValidationError(errors=[f"{name} must be >= {minimum}"])
    if maximum is not None and result > maximum:
        raise ValidationError(errors=[f"{name} must be <= {maximum}"])
    return result


def parse_optional_int(name: str, value: Any) -> int | None:
    """Positive integer id or None for null/blank."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(errors=[f"{name} must be an integer"])
    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and re.fullmatch(r"\d+", value.strip()):
        result = int(value.strip())
    else:
        raise ValidationError(errors=[f"{name} must be an integer"])
    if result < 1:
        raise ValidationError(errors=[f"{name} must be >= 1"])
    return result


def parse_text(name: str, value: Any, *, strip: bool = True) -> str:
    """
    String field from JSON input. Missing/null becomes "".

    Numbers, lists and objects raise ValidationError naming the field, so
    callers can use string methods on the result.
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(errors=[f"{name} must be a string"])
    return value.strip() if strip else value
