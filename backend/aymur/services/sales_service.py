# Overview: Service-layer operations for the sale lifecycle; create, complete, void and soft delete.

"""
Sale Lifecycle

STATE MACHINE:
    pending --complete--> completed
    pending --void------> returned

    pending:   items, prices and totals may change; items are reserved
    completed: items sold; customer debited with the sale total
    returned:  voided while pending; items released, payments refunded

No transition leaves completed or returned here. Returns of completed
sales are a separate flow.

Completion and void write the inventory batch, the sale status (under the
sale's version) and any ledger entries in ONE transaction, so a sale is
never completed with unsold items or voided with items still reserved.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Sale, SalePayment, Shop
from ..models.sales import SALE_COMPLETED, SALE_PENDING, SALE_RETURNED
from aymur.time_utils import to_utc_z, utcnow
from aymur.validation import (
    MAX_NOTES_LENGTH,
    MAX_VOID_REASON_LENGTH,
    optional_cents,
    optional_id,
    optional_text,
    parse_discount,
    require_currency,
    require_date,
    require_id,
    require_text,
)
from . import ledger_service, reservation_service, sequence_service
from .concurrency import compare_and_swap
from .errors import (
    DatabaseError,
    InvalidStatusError,
    NoItemsError,
    NotFoundError,
    SaleCoreError,
    ValidationError,
)
from .ledger_service import LedgerEntry, TXN_REFUND, TXN_SALE
from .lookups import get_customer, get_sale, get_sale_items
from .payment_service import get_sale_payments
from .pricing import payment_status_for


SALE_TYPES = {"sale"}

SALE_TRANSITIONS = {
    SALE_PENDING: {SALE_COMPLETED, SALE_RETURNED},
    SALE_COMPLETED: set(),
    SALE_RETURNED: set(),
}


def can_transition(*, from_status: str, to_status: str) -> bool:
    return to_status in SALE_TRANSITIONS.get(from_status, set())


def _require_transition(sale: Sale, to_status: str, message: str) -> None:
    if not can_transition(from_status=sale.status, to_status=to_status):
        raise InvalidStatusError(message, details={"sale_id": sale.id, "status": sale.status})


# =============================================================================
# CREATE
# =============================================================================

def create_sale(
    shop_id: int,
    actor_id: int,
    sale_date: date | str,
    currency: str,
    customer_id: int | None = None,
    discount_type: str | None = None,
    discount_value: int | None = None,
    tax_cents: int | None = None,
    notes: str | None = None,
    sale_type: str = "sale",
) -> Sale:
    """
    Open a new pending sale with zero totals and a freshly allocated number.

    Raises:
        ValidationError: malformed input
        NotFoundError: shop or customer missing
        DatabaseError: numbering or insert failed
    """
    shop_id = require_id(shop_id, "shop_id")
    sale_date = require_date(sale_date, "sale_date")
    currency = require_currency(currency)
    customer_id = optional_id(customer_id, "customer_id")
    discount_type, discount_value = parse_discount(discount_type, discount_value)
    tax_cents = optional_cents(tax_cents, "tax_cents") or 0
    notes = optional_text(notes, "notes", MAX_NOTES_LENGTH)
    if sale_type not in SALE_TYPES:
        raise ValidationError(f"sale_type must be one of {sorted(SALE_TYPES)}")

    shop = db.session.query(Shop).filter_by(id=shop_id).first()
    if not shop or not shop.is_active:
        raise NotFoundError("Shop not found", details={"shop_id": shop_id})
    if customer_id is not None:
        get_customer(customer_id, shop_id=shop_id)

    sale_number = sequence_service.next_sale_number(shop_id)

    now = utcnow()
    sale = Sale(
        shop_id=shop_id,
        customer_id=customer_id,
        sale_number=sale_number,
        sale_date=sale_date,
        sale_type=sale_type,
        currency=currency,
        subtotal_cents=0,
        discount_type=discount_type,
        discount_value=discount_value,
        discount_amount_cents=0,
        tax_cents=tax_cents,
        total_cents=tax_cents,
        paid_cents=0,
        status=SALE_PENDING,
        version=1,
        notes=notes,
        created_by=actor_id,
        created_at=now,
        updated_by=actor_id,
        updated_at=now,
    )
    db.session.add(sale)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create sale %s for shop %s", sale_number, shop_id)
        raise DatabaseError("Failed to create sale") from exc

    current_app.logger.info("Created sale %s (id=%s) for shop %s", sale_number, sale.id, shop_id)
    return sale


# =============================================================================
# COMPLETE
# =============================================================================

def _item_ids(sale_id: int) -> list[int]:
    return [line.inventory_item_id for line in get_sale_items(sale_id)]


def complete_sale(sale_id: int, actor_id: int) -> Sale:
    """
    pending -> completed.

    Marks every line's item sold, fixes the final payment status and, when
    a customer is attached, debits the customer with the sale total.

    Raises:
        NotFoundError, InvalidStatusError, NoItemsError,
        ConcurrentModificationError, DatabaseError
    """
    sale_id = require_id(sale_id, "sale_id")
    sale = get_sale(sale_id)
    _require_transition(sale, SALE_COMPLETED, "Only pending sales can be completed")
    if not _item_ids(sale_id):
        raise NoItemsError("Cannot complete a sale with no items", details={"sale_id": sale_id})

    def _prepare():
        current = get_sale(sale_id)
        _require_transition(current, SALE_COMPLETED, "Only pending sales can be completed")
        item_ids = _item_ids(sale_id)
        if not item_ids:
            raise NoItemsError("Cannot complete a sale with no items", details={"sale_id": sale_id})

        now = utcnow()
        compare_and_swap(
            Sale,
            sale_id,
            current.version,
            {
                "status": SALE_COMPLETED,
                "payment_status": payment_status_for(current.paid_cents, current.total_cents),
                "completed_at": now,
                "updated_at": now,
                "updated_by": actor_id,
            },
            expected={"status": SALE_PENDING},
            commit=False,
        )
        reservation_service.finalize(item_ids, actor_id, commit=False)

        if current.customer_id is None or current.total_cents == 0:
            return []
        return [LedgerEntry(
            shop_id=current.shop_id,
            customer_id=current.customer_id,
            transaction_type=TXN_SALE,
            actor_id=actor_id,
            debit_cents=current.total_cents,
            reference_type="sale",
            reference_id=sale_id,
            description=f"Sale {current.sale_number}",
        )]

    try:
        txns = ledger_service.commit_with_entries(_prepare)
    except SaleCoreError:
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to complete sale %s", sale_id)
        raise DatabaseError("Failed to complete sale") from exc

    ledger_service.sync_after_append(txns, actor_id, operation="complete_sale")
    current_app.logger.info("Completed sale %s by user %s", sale_id, actor_id)
    return get_sale(sale_id)


# =============================================================================
# VOID
# =============================================================================

def _payments_by_customer(sale_id: int) -> dict[int, int]:
    rows = (
        db.session.query(SalePayment.customer_id, func.sum(SalePayment.amount_cents))
        .filter(SalePayment.sale_id == sale_id)
        .group_by(SalePayment.customer_id)
        .all()
    )
    totals: dict[int, int] = defaultdict(int)
    for customer_id, amount in rows:
        totals[customer_id] += int(amount or 0)
    return dict(totals)


def void_sale(sale_id: int, reason: str, actor_id: int) -> Sale:
    """
    pending -> returned.

    Releases every reserved item, appends "[VOIDED] <timestamp>: <reason>"
    to the notes and, if anything was paid, posts a refund entry per paying
    customer reversing their payments.

    Raises:
        ValidationError, NotFoundError, InvalidStatusError,
        ConcurrentModificationError, DatabaseError
    """
    sale_id = require_id(sale_id, "sale_id")
    reason = require_text(reason, "reason", MAX_VOID_REASON_LENGTH)

    sale = get_sale(sale_id)
    _require_transition(sale, SALE_RETURNED, "Only pending sales can be voided; use a return for completed sales")

    def _prepare():
        current = get_sale(sale_id)
        _require_transition(current, SALE_RETURNED, "Only pending sales can be voided; use a return for completed sales")
        item_ids = _item_ids(sale_id)

        now = utcnow()
        marker = f"[VOIDED] {to_utc_z(now)}: {reason}"
        notes = f"{current.notes}\n{marker}" if current.notes else marker
        compare_and_swap(
            Sale,
            sale_id,
            current.version,
            {"status": SALE_RETURNED, "notes": notes, "updated_at": now, "updated_by": actor_id},
            expected={"status": SALE_PENDING},
            commit=False,
        )
        reservation_service.release_many(item_ids, actor_id, commit=False)

        if current.paid_cents <= 0:
            return []
        return [
            LedgerEntry(
                shop_id=current.shop_id,
                customer_id=customer_id,
                transaction_type=TXN_REFUND,
                actor_id=actor_id,
                debit_cents=amount,
                reference_type="sale",
                reference_id=sale_id,
                description=f"Refund for voided sale {current.sale_number}",
            )
            for customer_id, amount in sorted(_payments_by_customer(sale_id).items())
            if amount > 0
        ]

    try:
        txns = ledger_service.commit_with_entries(_prepare)
    except SaleCoreError:
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to void sale %s", sale_id)
        raise DatabaseError("Failed to void sale") from exc

    ledger_service.sync_after_append(txns, actor_id, operation="void_sale")
    current_app.logger.info("Voided sale %s by user %s", sale_id, actor_id)
    return get_sale(sale_id)


# =============================================================================
# SOFT DELETE / READS
# =============================================================================

def soft_delete_sale(sale_id: int, actor_id: int) -> None:
    """
    Hide a completed or voided sale. Pending sales must be voided first so
    their reservations are released.
    """
    sale_id = require_id(sale_id, "sale_id")
    sale = get_sale(sale_id)
    if sale.status == SALE_PENDING:
        raise InvalidStatusError("Void a pending sale before deleting it", details={"sale_id": sale_id})

    now = utcnow()
    try:
        compare_and_swap(
            Sale,
            sale_id,
            sale.version,
            {"deleted_at": now, "deleted_by": actor_id, "updated_at": now, "updated_by": actor_id},
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete sale %s", sale_id)
        raise DatabaseError("Failed to delete sale") from exc
    current_app.logger.info("Soft-deleted sale %s by user %s", sale_id, actor_id)


def get_sale_detail(sale_id: int) -> dict:
    """Sale with its lines and payments."""
    sale_id = require_id(sale_id, "sale_id")
    sale = get_sale(sale_id)
    data = sale.to_dict()
    data["items"] = [line.to_dict() for line in get_sale_items(sale_id)]
    data["payments"] = [payment.to_dict() for payment in get_sale_payments(sale_id)]
    return data
