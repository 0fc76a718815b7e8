# Overview: Service-layer operations for sale line items; keeps sale totals in step with the lines.

"""
Sale line item manager.

Every mutating operation ends with a totals recompute:

    subtotal = sum(line_total)
    discount = percentage ? subtotal * rate : min(fixed, subtotal)
    total    = max(0, subtotal - discount + tax)

The recompute reads all current lines and writes the sale under its
version (and only while it is still pending), so it is idempotent and
independent of the order in which concurrent line changes land. A lost
race on the sale version simply re-reads and recomputes.

ADD, REMOVE and UPDATE apply their line change, the matching inventory
transition and the totals write in a single transaction. The payment
status follows the new total while the sale is pending.
"""

from __future__ import annotations

from typing import Callable

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Sale, SaleItem
from ..models.inventory import ITEM_AVAILABLE
from ..models.sales import SALE_PENDING
from aymur.time_utils import utcnow
from aymur.validation import optional_cents, require_cents, require_id, require_quantity
from . import reservation_service
from .concurrency import compare_and_swap
from .errors import (
    ConcurrentModificationError,
    DatabaseError,
    DuplicateItemError,
    ItemUnavailableError,
    SaleCoreError,
    ValidationError,
)
from .lookups import get_sale, get_sale_item, require_pending
from .pricing import PAYMENT_UNPAID, compute_totals, line_total_cents, payment_status_for


def _sum_line_totals(sale_id: int) -> list[int]:
    rows = db.session.query(SaleItem.line_total_cents).filter_by(sale_id=sale_id).all()
    return [row[0] for row in rows]


def recompute_sale_totals(
    sale_id: int,
    actor_id: int,
    *,
    mutate: Callable[[Sale], None] | None = None,
) -> Sale:
    """
    Recompute and persist subtotal/discount/total from the sale's current lines.

    `mutate`, when given, runs inside the same transaction before the lines
    are summed (line update/delete) and is re-applied on every attempt.

    Raises:
        NotFoundError: sale missing
        InvalidStatusError: sale is no longer pending
        ConcurrentModificationError: attempts exhausted, or raised by `mutate`
    """
    attempts = current_app.config.get("TOTALS_RECOMPUTE_ATTEMPTS", 5)
    for attempt in range(attempts):
        sale = get_sale(sale_id)
        require_pending(sale, "Cannot change items on a completed or voided sale")

        if mutate is not None:
            mutate(sale)

        totals = compute_totals(
            _sum_line_totals(sale_id),
            sale.discount_type,
            sale.discount_value,
            sale.tax_cents,
        )
        payment_status = (
            payment_status_for(sale.paid_cents, totals["total_cents"]) if sale.paid_cents else PAYMENT_UNPAID
        )
        try:
            compare_and_swap(
                Sale,
                sale_id,
                sale.version,
                {**totals, "payment_status": payment_status, "updated_at": utcnow(), "updated_by": actor_id},
                expected={"status": SALE_PENDING},
            )
        except ConcurrentModificationError:
            current_app.logger.info(
                "Sale %s changed during totals recompute (attempt %d/%d)", sale_id, attempt + 1, attempts
            )
            continue
        return get_sale(sale_id)

    raise ConcurrentModificationError(
        "Sale totals could not be updated - the sale is being modified concurrently",
        details={"sale_id": sale_id},
    )


def add_sale_item(
    sale_id: int,
    item_id: int,
    unit_price_cents: int,
    quantity: int,
    actor_id: int,
) -> SaleItem:
    """
    Add an inventory item to a pending sale and reserve it.

    The line insert, the reservation and the totals write commit together,
    and the totals write only lands while the sale is still pending. A sale
    completed or voided in between therefore rejects the whole addition.

    Raises:
        ValidationError, NotFoundError, InvalidStatusError,
        ItemUnavailableError, DuplicateItemError,
        ConcurrentModificationError, DatabaseError
    """
    sale_id = require_id(sale_id, "sale_id")
    item_id = require_id(item_id, "item_id")
    unit_price_cents = require_cents(unit_price_cents, "unit_price_cents")
    quantity = require_quantity(1 if quantity is None else quantity)

    sale = get_sale(sale_id)
    require_pending(sale, "Cannot add items to a completed or voided sale")

    item = reservation_service.get_item(item_id, shop_id=sale.shop_id)

    existing = db.session.query(SaleItem.id).filter_by(sale_id=sale_id, inventory_item_id=item_id).first()
    if existing:
        raise DuplicateItemError("This item is already in the sale", details={"item_id": item_id})

    if item.status != ITEM_AVAILABLE:
        raise ItemUnavailableError(
            f"Item is not available for sale (current status: {item.status})",
            details={"item_id": item_id, "status": item.status},
        )

    expected_version = item.version
    snapshot = item.snapshot()
    shop_id = sale.shop_id
    added: dict[str, int] = {}

    def _mutate(_sale: Sale) -> None:
        line = SaleItem(
            shop_id=shop_id,
            sale_id=sale_id,
            inventory_item_id=item_id,
            unit_price_cents=unit_price_cents,
            quantity=quantity,
            line_total_cents=line_total_cents(unit_price_cents, quantity),
            created_by=actor_id,
            **snapshot,
        )
        db.session.add(line)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateItemError("This item is already in the sale", details={"item_id": item_id})
        added["line_id"] = line.id
        reservation_service.reserve(item_id, expected_version, actor_id, commit=False)

    try:
        recompute_sale_totals(sale_id, actor_id, mutate=_mutate)
    except SaleCoreError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to add item %s to sale %s", item_id, sale_id)
        raise DatabaseError("Failed to add item to sale") from exc

    return get_sale_item(added["line_id"])


def remove_sale_item(line_id: int, actor_id: int) -> Sale:
    """
    Remove a line from a pending sale, release its item and recompute totals.

    The delete, the release and the totals write commit together. An item
    that is no longer reserved is left in its current status.

    Returns the updated sale.
    """
    line_id = require_id(line_id, "sale_item_id")
    line = get_sale_item(line_id)
    sale_id = line.sale_id
    item_id = line.inventory_item_id

    sale = get_sale(sale_id)
    require_pending(sale, "Cannot remove items from a completed or voided sale")

    def _mutate(_sale: Sale) -> None:
        current = db.session.query(SaleItem).filter_by(id=line_id).first()
        if current is None:
            raise ConcurrentModificationError("Sale item was removed concurrently", details={"sale_item_id": line_id})
        reservation_service.release_if_reserved(item_id, actor_id, commit=False)
        db.session.delete(current)

    try:
        return recompute_sale_totals(sale_id, actor_id, mutate=_mutate)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to remove sale item %s", line_id)
        raise DatabaseError("Failed to remove item from sale") from exc


def update_sale_item(
    line_id: int,
    actor_id: int,
    *,
    unit_price_cents: int | None = None,
    quantity: int | None = None,
) -> SaleItem:
    """
    Change a line's unit price and/or quantity and recompute totals.

    Inventory status is not touched.
    """
    line_id = require_id(line_id, "sale_item_id")
    unit_price_cents = optional_cents(unit_price_cents, "unit_price_cents")
    if quantity is not None:
        quantity = require_quantity(quantity)
    if unit_price_cents is None and quantity is None:
        raise ValidationError("unit_price_cents or quantity is required")

    line = get_sale_item(line_id)
    sale = get_sale(line.sale_id)
    require_pending(sale, "Cannot update items in a completed or voided sale")

    def _mutate(_sale: Sale) -> None:
        current = db.session.query(SaleItem).filter_by(id=line_id).populate_existing().first()
        if current is None:
            raise ConcurrentModificationError("Sale item was removed concurrently", details={"sale_item_id": line_id})
        new_price = unit_price_cents if unit_price_cents is not None else current.unit_price_cents
        new_qty = quantity if quantity is not None else current.quantity
        current.unit_price_cents = new_price
        current.quantity = new_qty
        current.line_total_cents = line_total_cents(new_price, new_qty)

    try:
        recompute_sale_totals(line.sale_id, actor_id, mutate=_mutate)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update sale item %s", line_id)
        raise DatabaseError("Failed to update sale item") from exc

    return get_sale_item(line_id)
