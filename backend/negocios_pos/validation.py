from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Upper bound for a single line quantity / stock value
MAX_QUANTITY = 1_000_000

CUSTOMER_FIELD_LENGTHS = {
    "name": 255,
    "document": 64,
    "phone": 64,
    "address": 255,
}


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate EAN)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class CustomerInfo:
    """Free-text customer snapshot stored on the sale header."""
    name: str | None = None
    document: str | None = None
    phone: str | None = None
    address: str | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects floats, bools and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
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
        # fallback: truthiness
        return bool(value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
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

    # Reject unknown / non-writable fields
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

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Blank optional strings are stored as NULL (keeps per-tenant EAN uniqueness sane)
        if isinstance(col.type, (String, Text)) and col.nullable and val == "":
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("sale_price_cents", "purchase_price_cents"):
        if field in patch and patch[field] is not None:
            price = patch[field]
            if price < 0:
                raise ValidationError(f"{field} must be >= 0")
            if price > MAX_PRICE_CENTS:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}")

    for field in ("stock", "min_stock"):
        if field in patch and patch[field] is not None:
            if patch[field] < 0:
                raise ValidationError(f"{field} must be >= 0")
            if patch[field] > MAX_QUANTITY:
                raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}")


def parse_line_items(raw: Iterable | None) -> list[LineItem]:
    """
    Validate the line items of a sale or return.

    Accepts mappings with product_id, quantity (> 0) and unit_price_cents (>= 0),
    or LineItem instances. Order is preserved. An empty list is returned as-is;
    callers decide whether that is an error.
    """
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("line_items must be a list")

    items: list[LineItem] = []
    for index, entry in enumerate(raw):
        if isinstance(entry, LineItem):
            values = {
                "product_id": entry.product_id,
                "quantity": entry.quantity,
                "unit_price_cents": entry.unit_price_cents,
            }
        elif isinstance(entry, dict):
            values = entry
        else:
            raise ValidationError(f"line_items[{index}] must be an object")

        for key in ("product_id", "quantity", "unit_price_cents"):
            if values.get(key) is None:
                raise ValidationError(f"line_items[{index}].{key} is required")

        product_id = _coerce_int(f"line_items[{index}].product_id", values["product_id"])
        quantity = _coerce_int(f"line_items[{index}].quantity", values["quantity"])
        unit_price = _coerce_int(f"line_items[{index}].unit_price_cents", values["unit_price_cents"])

        if product_id <= 0:
            raise ValidationError(f"line_items[{index}].product_id must be positive")
        if quantity <= 0:
            raise ValidationError(f"line_items[{index}].quantity must be > 0")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"line_items[{index}].quantity cannot exceed {MAX_QUANTITY}")
        if unit_price < 0:
            raise ValidationError(f"line_items[{index}].unit_price_cents must be >= 0")
        if unit_price > MAX_PRICE_CENTS:
            raise ValidationError(f"line_items[{index}].unit_price_cents cannot exceed {MAX_PRICE_CENTS}")

        items.append(LineItem(product_id=product_id, quantity=quantity, unit_price_cents=unit_price))

    return items


def parse_customer(raw) -> CustomerInfo:
    if raw is None:
        return CustomerInfo()
    if isinstance(raw, CustomerInfo):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError("customer must be an object")

    values = {}
    for key, max_len in CUSTOMER_FIELD_LENGTHS.items():
        value = raw.get(key)
        if value is None:
            values[key] = None
            continue
        value = str(value).strip()
        if len(value) > max_len:
            raise ValidationError(f"customer.{key} exceeds max length {max_len}")
        values[key] = value or None

    return CustomerInfo(**values)


def clean_reason(reason) -> str | None:
    """Free-text reason for a return or stock movement; blank becomes None."""
    if reason is None:
        return None
    reason = str(reason).strip()
    if len(reason) > 255:
        raise ValidationError("reason exceeds max length 255")
    return reason or None
