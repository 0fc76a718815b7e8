# Overview: Service-layer operations for sale numbering; allocates shop-scoped, date-bucketed sale numbers.

"""
Sale numbers look like {prefix}{YYYYMMDD}-{sequence}, e.g. INV-20241204-0001.

- prefix: shop_settings.invoice_prefix, falling back to DEFAULT_INVOICE_PREFIX
- date: the UTC day the number is allocated, not the sale date
- sequence: per shop, per calendar day, starting at 1, zero-padded

Allocation uses a counter row per (shop, day) bumped with a single UPDATE,
so concurrent creators never share a number. The unique constraint on
(shop_id, sequence_date) settles the race for the first number of the day.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import ShopSetting, SaleNumberSequence
from aymur.time_utils import today_utc
from .concurrency import run_with_retry
from .errors import DatabaseError, ValidationError


def get_invoice_prefix(shop_id: int) -> str:
    setting = db.session.query(ShopSetting).filter_by(shop_id=shop_id).first()
    if setting and setting.invoice_prefix:
        return setting.invoice_prefix
    return current_app.config.get("DEFAULT_INVOICE_PREFIX", "INV-")


def format_sale_number(prefix: str, on: date, sequence: int, pad: int = 4) -> str:
    return f"{prefix}{on.strftime('%Y%m%d')}-{sequence:0{pad}d}"


def _allocate(shop_id: int, on: date) -> int:
    stmt = (
        update(SaleNumberSequence)
        .where(
            SaleNumberSequence.shop_id == shop_id,
            SaleNumberSequence.sequence_date == on,
        )
        .values(next_number=SaleNumberSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _read_allocated() -> int:
        current = (
            db.session.query(SaleNumberSequence.next_number)
            .filter_by(shop_id=shop_id, sequence_date=on)
            .scalar()
        )
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        allocated = _read_allocated()
        db.session.commit()
        return allocated

    # First sale of the day for this shop
    db.session.add(SaleNumberSequence(shop_id=shop_id, sequence_date=on, next_number=2))
    try:
        db.session.commit()
        return 1
    except IntegrityError:
        # Another creator inserted the row first; take the next number from it
        db.session.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        allocated = _read_allocated()
        db.session.commit()
        return allocated


def next_sale_number(shop_id: int, on: date | None = None) -> str:
    """
    Atomically allocate the next sale number for a shop and day.

    Raises:
        ValidationError: shop_id missing
        DatabaseError: the counter could not be read or bumped
    """
    if not shop_id:
        raise ValidationError("shop_id is required")

    on = on or today_utc()
    pad = current_app.config.get("SALE_NUMBER_PAD", 4)

    try:
        prefix = get_invoice_prefix(shop_id)
        sequence = run_with_retry(lambda: _allocate(shop_id, on))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to allocate sale number: shop_id=%s", shop_id)
        raise DatabaseError("Failed to generate sale number") from exc

    return format_sale_number(prefix, on, sequence, pad)
