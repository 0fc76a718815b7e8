# Overview: Pure sale-total arithmetic (integer cents); no database access.

from __future__ import annotations

from typing import Iterable

from ..models.sales import (
    DISCOUNT_FIXED,
    DISCOUNT_PERCENTAGE,
    PAYMENT_PAID,
    PAYMENT_PARTIAL,
    PAYMENT_UNPAID,
)


def line_total_cents(unit_price_cents: int, quantity: int) -> int:
    return unit_price_cents * quantity


def discount_cents(subtotal_cents: int, discount_type: str | None, discount_value: int | None) -> int:
    """
    percentage: subtotal * bps / 10000, rounded half-up to the cent
    fixed: min(value, subtotal)
    """
    if not discount_type or not discount_value:
        return 0
    if discount_type == DISCOUNT_PERCENTAGE:
        return (subtotal_cents * discount_value + 5_000) // 10_000
    if discount_type == DISCOUNT_FIXED:
        return min(discount_value, subtotal_cents)
    raise ValueError(f"Unknown discount type: {discount_type}")


def compute_totals(
    line_totals: Iterable[int],
    discount_type: str | None,
    discount_value: int | None,
    tax_cents: int | None,
) -> dict[str, int]:
    """Subtotal, discount and total for a set of line totals (order-independent)."""
    subtotal = sum(line_totals)
    discount = discount_cents(subtotal, discount_type, discount_value)
    total = max(0, subtotal - discount + (tax_cents or 0))
    return {
        "subtotal_cents": subtotal,
        "discount_amount_cents": discount,
        "total_cents": total,
    }


def payment_status_for(paid_cents: int, total_cents: int) -> str:
    """
    - paid: paid >= total
    - partial: 0 < paid < total
    - unpaid: nothing paid
    """
    if paid_cents >= total_cents:
        return PAYMENT_PAID
    if paid_cents > 0:
        return PAYMENT_PARTIAL
    return PAYMENT_UNPAID
