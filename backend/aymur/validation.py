from __future__ import annotations

from datetime import date
from typing import Any

from aymur.time_utils import parse_iso_date
from .services.errors import ValidationError


# Maximum amount: 9,999,999.99 in cents
MAX_AMOUNT_CENTS = 999_999_999
MAX_NOTES_LENGTH = 1000
MAX_VOID_REASON_LENGTH = 500
MAX_CHEQUE_NUMBER_LENGTH = 50
BASIS_POINTS_100_PERCENT = 10_000


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for request input.

    Rejects bools, floats, decimals and scientific notation; accepts ints and
    plain digit strings (optional leading minus).
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_id(value: Any, field: str) -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    parsed = coerce_int(value, field)
    if parsed <= 0:
        raise ValidationError(f"Invalid {field}")
    return parsed


def optional_id(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return require_id(value, field)


def require_cents(value: Any, field: str, *, positive: bool = False) -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    cents = coerce_int(value, field)
    if positive and cents <= 0:
        raise ValidationError(f"{field} must be positive")
    if cents < 0:
        raise ValidationError(f"{field} must be non-negative")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} exceeds maximum of {MAX_AMOUNT_CENTS}")
    return cents


def optional_cents(value: Any, field: str) -> int | None:
    if value is None:
        return None
    return require_cents(value, field)


def require_quantity(value: Any, field: str = "quantity") -> int:
    qty = coerce_int(value, field)
    if qty < 1:
        raise ValidationError("Quantity must be at least 1")
    return qty


def require_currency(value: Any) -> str:
    if not isinstance(value, str) or len(value.strip()) != 3 or not value.strip().isalpha():
        raise ValidationError("Currency must be a 3-letter code")
    return value.strip().upper()


def require_date(value: Any, field: str) -> date:
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field}: invalid date format (YYYY-MM-DD)")
    if parsed is None:
        raise ValidationError(f"{field} is required")
    return parsed


def optional_date(value: Any, field: str) -> date | None:
    if value is None or value == "":
        return None
    return require_date(value, field)


def optional_text(value: Any, field: str, max_length: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if len(value) > max_length:
        raise ValidationError(f"{field} must be less than {max_length} characters")
    return value


def require_text(value: Any, field: str, max_length: int) -> str:
    text = optional_text(value, field, max_length)
    if text is None or not text.strip():
        raise ValidationError(f"{field} is required")
    return text.strip()


def parse_discount(discount_type: Any, discount_value: Any) -> tuple[str | None, int | None]:
    """
    Normalize a sale-level discount.

    - percentage: value in basis points, 0..10000 (12.5% -> 1250)
    - fixed: value in cents
    - no type: no discount (value ignored when zero/None)
    """
    if discount_type in (None, ""):
        if discount_value not in (None, 0):
            raise ValidationError("discount_type is required when discount_value is set")
        return None, None

    if discount_type not in ("percentage", "fixed"):
        raise ValidationError("discount_type must be 'percentage' or 'fixed'")

    if discount_value is None:
        return discount_type, 0

    value = coerce_int(discount_value, "discount_value")
    if value < 0:
        raise ValidationError("discount_value must be non-negative")
    if discount_type == "percentage" and value > BASIS_POINTS_100_PERCENT:
        raise ValidationError("percentage discount cannot exceed 100%")
    if discount_type == "fixed" and value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"discount_value exceeds maximum of {MAX_AMOUNT_CENTS}")
    return discount_type, value
