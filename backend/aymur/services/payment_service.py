# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Recorder

A payment is written once, together with:
- the sale's paid amount and payment status (under the sale's version)
- a credit entry on the paying customer's ledger

All three commit in one transaction. The customer's aggregates are
re-derived from the ledger afterwards.

PAYMENT METHODS:
- cash, card, bank_transfer: amount only
- cheque: cheque_number and cheque_date required, cheque_bank optional;
  starts with cheque_status = pending
- mixed: cash/card/transfer/cheque components that sum to the amount
"""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from flask import current_app

from ..extensions import db
from ..models import Sale, SalePayment
from ..models.sales import SALE_RETURNED
from aymur.time_utils import utcnow
from aymur.validation import (
    MAX_CHEQUE_NUMBER_LENGTH,
    MAX_NOTES_LENGTH,
    optional_cents,
    optional_date,
    optional_text,
    require_cents,
    require_date,
    require_id,
)
from . import ledger_service
from .concurrency import compare_and_swap
from .errors import (
    ConcurrentModificationError,
    CustomerMismatchError,
    DatabaseError,
    InvalidStatusError,
    NotFoundError,
    SaleCoreError,
    ValidationError,
)
from .ledger_service import LedgerEntry, TXN_PAYMENT
from .lookups import get_customer, get_sale
from .pricing import payment_status_for


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_BANK_TRANSFER = "bank_transfer"
METHOD_CHEQUE = "cheque"
METHOD_MIXED = "mixed"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CARD,
    METHOD_BANK_TRANSFER,
    METHOD_CHEQUE,
    METHOD_MIXED,
]

CHEQUE_PENDING = "pending"
CHEQUE_CLEARED = "cleared"
CHEQUE_BOUNCED = "bounced"

MIXED_COMPONENTS = (
    "cash_amount_cents",
    "card_amount_cents",
    "transfer_amount_cents",
    "cheque_amount_cents",
)


def validate_method_fields(method: str, amount_cents: int, method_fields: dict | None) -> dict:
    """
    Check method-specific fields and return the columns to store.

    Raises:
        ValidationError: unknown method, missing cheque details, bad mixed split
    """
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}")

    fields = dict(method_fields or {})
    unknown = set(fields) - set(MIXED_COMPONENTS) - {"cheque_number", "cheque_date", "cheque_bank"}
    if unknown:
        raise ValidationError(f"Unknown payment fields: {', '.join(sorted(unknown))}")

    columns = {name: optional_cents(fields.get(name), name) or 0 for name in MIXED_COMPONENTS}

    cheque_number = optional_text(fields.get("cheque_number"), "cheque_number", MAX_CHEQUE_NUMBER_LENGTH)
    cheque_date = optional_date(fields.get("cheque_date"), "cheque_date")
    cheque_bank = optional_text(fields.get("cheque_bank"), "cheque_bank", 100)

    uses_cheque = method == METHOD_CHEQUE or (method == METHOD_MIXED and columns["cheque_amount_cents"] > 0)
    if uses_cheque and (not cheque_number or cheque_date is None):
        raise ValidationError("Cheque number and date are required for cheque payments")

    if method == METHOD_MIXED:
        parts = sum(columns.values())
        if parts <= 0:
            raise ValidationError("Mixed payment must have at least one payment component")
        if parts != amount_cents:
            raise ValidationError("Mixed payment components must sum to total amount")
    else:
        columns = {name: 0 for name in MIXED_COMPONENTS}
        component = {
            METHOD_CASH: "cash_amount_cents",
            METHOD_CARD: "card_amount_cents",
            METHOD_BANK_TRANSFER: "transfer_amount_cents",
            METHOD_CHEQUE: "cheque_amount_cents",
        }[method]
        columns[component] = amount_cents

    columns.update({
        "cheque_number": cheque_number if uses_cheque else None,
        "cheque_date": cheque_date if uses_cheque else None,
        "cheque_bank": cheque_bank if uses_cheque else None,
        "cheque_status": CHEQUE_PENDING if uses_cheque else None,
    })
    return columns


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def record_payment(
    sale_id: int,
    customer_id: int,
    method: str,
    amount_cents: int,
    payment_date,
    actor_id: int,
    method_fields: dict | None = None,
    notes: str | None = None,
) -> SalePayment:
    """
    Record a payment against a sale.

    Args:
        sale_id: Sale being paid
        customer_id: Paying customer (must match the sale's customer if bound)
        method: cash, card, bank_transfer, cheque, mixed
        amount_cents: Amount received (positive)
        payment_date: YYYY-MM-DD
        actor_id: Authenticated user recording the payment
        method_fields: cheque_* details / mixed components
        notes: Free text (optional)

    Returns:
        SalePayment record

    Raises:
        ValidationError, NotFoundError, CustomerMismatchError,
        InvalidStatusError, ConcurrentModificationError, DatabaseError
    """
    sale_id = require_id(sale_id, "sale_id")
    customer_id = require_id(customer_id, "customer_id")
    amount_cents = require_cents(amount_cents, "amount_cents", positive=True)
    payment_date = require_date(payment_date, "payment_date")
    notes = optional_text(notes, "notes", MAX_NOTES_LENGTH)
    columns = validate_method_fields(method, amount_cents, method_fields)

    sale = get_sale(sale_id)
    if sale.customer_id and sale.customer_id != customer_id:
        raise CustomerMismatchError(
            "Customer does not match the sale",
            details={"sale_customer_id": sale.customer_id, "customer_id": customer_id},
        )
    get_customer(customer_id, shop_id=sale.shop_id)

    created: dict[str, int] = {}

    def _prepare():
        current = get_sale(sale_id)
        if current.status == SALE_RETURNED:
            raise InvalidStatusError("Cannot record a payment on a voided sale", details={"sale_id": sale_id})

        payment = SalePayment(
            shop_id=current.shop_id,
            sale_id=sale_id,
            customer_id=customer_id,
            payment_method=method,
            amount_cents=amount_cents,
            payment_date=payment_date,
            notes=notes,
            created_by=actor_id,
            created_at=utcnow(),
            **columns,
        )
        db.session.add(payment)
        db.session.flush()
        created["payment_id"] = payment.id

        new_paid = current.paid_cents + amount_cents
        compare_and_swap(
            Sale,
            sale_id,
            current.version,
            {
                "paid_cents": new_paid,
                "payment_status": payment_status_for(new_paid, current.total_cents),
                "updated_at": utcnow(),
                "updated_by": actor_id,
            },
            expected={"status": current.status},
            commit=False,
        )

        return [LedgerEntry(
            shop_id=current.shop_id,
            customer_id=customer_id,
            transaction_type=TXN_PAYMENT,
            actor_id=actor_id,
            credit_cents=amount_cents,
            reference_type="sale_payment",
            reference_id=payment.id,
            description=f"Payment for sale {current.sale_number}",
        )]

    try:
        txns = ledger_service.commit_with_entries(_prepare)
    except SaleCoreError:
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to record payment for sale %s", sale_id)
        raise DatabaseError("Failed to record payment") from exc

    ledger_service.sync_after_append(txns, actor_id, operation="record_payment")
    return get_payment(created["payment_id"])


# =============================================================================
# CHEQUE CLEARING
# =============================================================================

def update_cheque_status(
    payment_id: int,
    status: str,
    actor_id: int,
    cleared_date=None,
) -> SalePayment:
    """
    Settle a cheque: pending -> cleared | bounced.

    The only update a payment row ever receives; the ledger is untouched.
    """
    payment_id = require_id(payment_id, "payment_id")
    if status not in (CHEQUE_CLEARED, CHEQUE_BOUNCED):
        raise ValidationError("Cheque status must be cleared or bounced")
    cleared_date = optional_date(cleared_date, "cheque_cleared_date")

    payment = get_payment(payment_id)
    if payment.cheque_status is None:
        raise InvalidStatusError("Payment has no cheque component", details={"payment_id": payment_id})
    if payment.cheque_status != CHEQUE_PENDING:
        raise InvalidStatusError(
            f"Cheque is already {payment.cheque_status}",
            details={"payment_id": payment_id, "cheque_status": payment.cheque_status},
        )

    stmt = (
        update(SalePayment)
        .where(SalePayment.id == payment_id, SalePayment.cheque_status == CHEQUE_PENDING)
        .values(
            cheque_status=status,
            cheque_cleared_date=cleared_date if status == CHEQUE_CLEARED else None,
        )
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.session.execute(stmt)
        if result.rowcount != 1:
            db.session.rollback()
            raise ConcurrentModificationError("Cheque status was changed concurrently", details={"payment_id": payment_id})
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update cheque status for payment %s", payment_id)
        raise DatabaseError("Failed to update cheque status") from exc

    current_app.logger.info("Cheque payment %s marked %s by user %s", payment_id, status, actor_id)
    return get_payment(payment_id)


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(payment_id: int) -> SalePayment:
    payment = db.session.query(SalePayment).filter_by(id=payment_id).populate_existing().first()
    if not payment:
        raise NotFoundError("Payment not found", details={"payment_id": payment_id})
    return payment


def get_sale_payments(sale_id: int) -> list[SalePayment]:
    """All payments for a sale, ordered by creation time."""
    return (
        db.session.query(SalePayment)
        .filter_by(sale_id=sale_id)
        .order_by(SalePayment.created_at, SalePayment.id)
        .all()
    )
