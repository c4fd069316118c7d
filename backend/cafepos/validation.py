# Overview: Model-driven payload validation and the 400/409 error types shared by services and routes.

from __future__ import annotations
from datetime import datetime
from cafepos.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum amount: PHP 9,999,999.99 (999,999,999 cents)
# Keeps typos in the amount field from wrecking a whole shift total
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., write against a closed shift)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may write, and which must be present on create.
    Nullability, types and String lengths come from the model itself.
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)


def _coerce_int(key: str, value: Any) -> int:
    # bool is an int subclass; JSON true/false is never a count or amount
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be an integer")

    text = value.strip()
    if "e" in text.lower():
        raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
    if "." in text:
        raise ValidationError(f"{key} must be an integer (no decimals)")
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"{key} must be an integer")


def _coerce_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a datetime")
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    return parsed


def _coerce_value(col, value: Any):
    """Convert a JSON value to what the column stores (None passes through)."""
    if value is None:
        return None

    coltype = col.type
    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)
    if isinstance(coltype, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{col.key} must be true or false")
        return value
    if isinstance(coltype, DateTime):
        return _coerce_datetime(col.key, value)
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
    Check a JSON body against the model's columns and the policy allowlist.

    partial=False is create (required fields enforced), partial=True is
    patch (only the keys given are checked).

    Returns:
        Cleaned dict holding only writable fields, values coerced.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}

    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None and not col.nullable:
            raise ValidationError(f"{key} cannot be null")

        value = _coerce_value(col, raw)

        if isinstance(value, str):
            if value == "" and not col.nullable:
                raise ValidationError(f"{key} cannot be blank")
            length = getattr(col.type, "length", None)
            if length and len(value) > length:
                raise ValidationError(f"{key} exceeds max length {length}")

        patch[key] = value

    return patch


PAYMENT_METHODS = ("Cash", "GCash", "Charge")
FINANCIAL_CATEGORIES = ("Revenue", "OPEX", "CAPEX", "COGS", "InventoryAsset")
RECONCILIATION_STATUSES = ("Verified", "Pending", "Rejected")


TRANSACTION_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "shift_id", "item", "quantity", "unit_price_cents", "total_cents",
        "payment_method", "expense_type", "financial_category",
        "customer_id", "customer_name", "notes", "timestamp",
    }),
    required_on_create=frozenset({"item"}),
)

# Edits are limited to amount, date and notes. Classification-bearing
# fields (item, category, payment method) are fixed once recorded.
TRANSACTION_EDIT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"quantity", "unit_price_cents", "total_cents", "notes", "timestamp"}),
)


def _check_amount(patch: dict, key: str) -> None:
    value = patch.get(key)
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_CENTS} (PHP {MAX_AMOUNT_CENTS / 100:,.2f})")


def enforce_rules_transaction(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_amount(patch, "total_cents")
    _check_amount(patch, "unit_price_cents")

    if "quantity" in patch and patch["quantity"] is not None and patch["quantity"] <= 0:
        raise ValidationError("quantity must be > 0")

    method = patch.get("payment_method")
    if method is not None and method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    category = patch.get("financial_category")
    if category is not None and category not in FINANCIAL_CATEGORIES:
        raise ValidationError(f"financial_category must be one of: {', '.join(FINANCIAL_CATEGORIES)}")

    # Expenses are always a single line; the amount lives in total_cents
    if patch.get("item") == "Expenses" and patch.get("quantity") not in (None, 1):
        raise ValidationError("Expenses must have quantity 1")


def parse_amount_cents(value: Any, *, field: str) -> int:
    """
    Parse an operator-entered amount into cents.

    Accepts ints (already cents) and numeric strings in pesos ("1500",
    "1500.50"). Blank or missing values are rejected: an empty rental box
    is a mistake, not zero.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, int):
        cents = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required")
        try:
            pesos = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
        if not pesos.is_finite():
            raise ValidationError(f"{field} must be a number")
        cents = int((pesos * 100).to_integral_value(rounding=ROUND_HALF_UP))
    else:
        raise ValidationError(f"{field} must be an integer number of cents")

    if cents < 0:
        raise ValidationError(f"{field} cannot be negative")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return cents
