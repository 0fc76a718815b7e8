# Overview: Service-layer operations for the customer ledger; append-only writes and derived balances.

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, CustomerTransaction
from ..models.customers import FINANCIAL_STATUS_CREDIT, FINANCIAL_STATUS_OWES, FINANCIAL_STATUS_PAID
from aymur.time_utils import utcnow
from .concurrency import compare_and_swap
from .errors import ConcurrentModificationError, DatabaseError, ValidationError
from .lookups import get_customer
"""
Customer Ledger Invariants (authoritative)

- Append-only: this module inserts customer_transactions rows and never
  updates or deletes them. There is no update/delete API.
- Chain: per customer, ordered by sequence_number,
      balance_after = previous balance_after + debit - credit
  with 0 before the first entry. The balance is what the customer owes.
- Customer aggregates (current balance, purchases, payments, financial
  status) are derived from the ledger and may lag it; they are
  re-derived after every append and by reconcile_customer().
"""


TXN_SALE = "sale"
TXN_PAYMENT = "payment"
TXN_REFUND = "refund"
TXN_ADJUSTMENT = "adjustment"

VALID_TRANSACTION_TYPES = {TXN_SALE, TXN_PAYMENT, TXN_REFUND, TXN_ADJUSTMENT}


@dataclass(frozen=True)
class LedgerEntry:
    """A ledger line to append; balance and sequence are assigned by append()."""
    shop_id: int
    customer_id: int
    transaction_type: str
    actor_id: int
    debit_cents: int = 0
    credit_cents: int = 0
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    description: Optional[str] = None


def _tip(customer_id: int) -> Optional[CustomerTransaction]:
    return (
        db.session.query(CustomerTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(CustomerTransaction.sequence_number.desc())
        .first()
    )


def current_balance(customer_id: int) -> int:
    """Authoritative balance: balance_after of the latest entry, 0 if none."""
    tip = _tip(customer_id)
    return tip.balance_after_cents if tip else 0


def _validate(entry: LedgerEntry) -> None:
    if entry.transaction_type not in VALID_TRANSACTION_TYPES:
        raise ValidationError(f"Invalid ledger transaction type: {entry.transaction_type}")
    if entry.debit_cents < 0 or entry.credit_cents < 0:
        raise ValidationError("Ledger amounts must be non-negative")
    if entry.debit_cents == 0 and entry.credit_cents == 0:
        raise ValidationError("Ledger entry must move money")


def _stage(entries: list[LedgerEntry]) -> list[CustomerTransaction]:
    staged = []
    tips: dict[int, tuple[int, int]] = {}
    for entry in entries:
        if entry.customer_id not in tips:
            tip = _tip(entry.customer_id)
            tips[entry.customer_id] = (
                (tip.sequence_number, tip.balance_after_cents) if tip else (0, 0)
            )
        sequence_number, previous_balance = tips[entry.customer_id]
        balance_after = previous_balance + entry.debit_cents - entry.credit_cents

        txn = CustomerTransaction(
            shop_id=entry.shop_id,
            customer_id=entry.customer_id,
            sequence_number=sequence_number + 1,
            transaction_type=entry.transaction_type,
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            debit_cents=entry.debit_cents,
            credit_cents=entry.credit_cents,
            balance_after_cents=balance_after,
            description=entry.description,
            created_by=entry.actor_id,
            created_at=utcnow(),
        )
        db.session.add(txn)
        staged.append(txn)
        tips[entry.customer_id] = (sequence_number + 1, balance_after)
    return staged


def commit_with_entries(prepare: Callable[[], Iterable[LedgerEntry]]) -> list[CustomerTransaction]:
    """
    Commit a unit of domain writes together with the ledger entries it produces.

    `prepare` stages the domain writes on the session (without committing)
    and returns the entries to append; the entries are chained onto each
    customer's tip and everything commits at once. If another writer claims
    the same (customer_id, sequence_number) first, the whole unit is rolled
    back and `prepare` runs again against fresh state, so two concurrent
    appends can never build on the same previous balance.

    Errors raised by `prepare` propagate unchanged.
    """
    attempts = current_app.config.get("LEDGER_APPEND_ATTEMPTS", 5)
    for attempt in range(attempts):
        entries = list(prepare())
        try:
            for entry in entries:
                _validate(entry)
        except ValidationError:
            db.session.rollback()
            raise
        try:
            staged = _stage(entries)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            current_app.logger.info(
                "Ledger sequence taken for customers %s, re-preparing (attempt %d/%d)",
                sorted({e.customer_id for e in entries}), attempt + 1, attempts,
            )
            continue
        return staged

    raise DatabaseError("Failed to append ledger entry")


def append(entry: LedgerEntry) -> CustomerTransaction:
    """Append one entry to a customer's chain (the only write this ledger offers)."""
    _validate(entry)
    return commit_with_entries(lambda: [entry])[0]


def list_transactions(customer_id: int, limit: int | None = None) -> list[CustomerTransaction]:
    q = (
        db.session.query(CustomerTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(CustomerTransaction.sequence_number.asc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()


def verify_chain(customer_id: int) -> list[dict]:
    """
    Walk a customer's chain and report every entry that breaks it.

    Returns an empty list for a consistent ledger.
    """
    problems = []
    previous_balance = 0
    expected_sequence = 1
    for txn in list_transactions(customer_id):
        if txn.sequence_number != expected_sequence:
            problems.append({
                "transaction_id": txn.id,
                "problem": "sequence_gap",
                "expected": expected_sequence,
                "actual": txn.sequence_number,
            })
        expected_balance = previous_balance + txn.debit_cents - txn.credit_cents
        if txn.balance_after_cents != expected_balance:
            problems.append({
                "transaction_id": txn.id,
                "problem": "balance_mismatch",
                "expected": expected_balance,
                "actual": txn.balance_after_cents,
            })
        previous_balance = txn.balance_after_cents
        expected_sequence = txn.sequence_number + 1
    return problems


def financial_status_for(balance_cents: int) -> str:
    if balance_cents > 0:
        return FINANCIAL_STATUS_OWES
    if balance_cents < 0:
        return FINANCIAL_STATUS_CREDIT
    return FINANCIAL_STATUS_PAID


def derive_aggregates(customer_id: int) -> dict:
    """Customer aggregates as the ledger says they should be."""
    def _sum(column, txn_type):
        return int(
            db.session.query(func.coalesce(func.sum(column), 0))
            .filter(
                CustomerTransaction.customer_id == customer_id,
                CustomerTransaction.transaction_type == txn_type,
            )
            .scalar()
            or 0
        )

    balance = current_balance(customer_id)
    purchases = _sum(CustomerTransaction.debit_cents, TXN_SALE)
    payments = _sum(CustomerTransaction.credit_cents, TXN_PAYMENT) - _sum(CustomerTransaction.debit_cents, TXN_REFUND)
    return {
        "current_balance_cents": balance,
        "total_purchases_cents": purchases,
        "total_payments_cents": payments,
        "financial_status": financial_status_for(balance),
    }


def sync_customer_aggregates(customer_id: int, actor_id: int) -> Customer:
    """
    Re-derive a customer's aggregates from the ledger and write them under
    the customer's version. Idempotent; a lost version race re-derives.

    Raises:
        NotFoundError: customer missing
        ConcurrentModificationError: attempts exhausted
    """
    attempts = current_app.config.get("LEDGER_APPEND_ATTEMPTS", 5)
    for _ in range(attempts):
        customer = get_customer(customer_id)
        aggregates = derive_aggregates(customer_id)
        try:
            compare_and_swap(
                Customer,
                customer_id,
                customer.version,
                {**aggregates, "updated_at": utcnow(), "updated_by": actor_id},
            )
        except ConcurrentModificationError:
            continue
        return get_customer(customer_id)

    raise ConcurrentModificationError(
        "Customer balance could not be updated - the customer is being modified concurrently",
        details={"customer_id": customer_id},
    )


def reconcile_customer(customer_id: int, actor_id: int) -> dict:
    """
    Repair reconciliation debt for one customer.

    Returns {"customer": ..., "changed": {...}, "chain_problems": [...]}.
    """
    before = get_customer(customer_id).to_dict()
    customer = sync_customer_aggregates(customer_id, actor_id)
    after = customer.to_dict()
    changed = {
        key: {"before": before[key], "after": after[key]}
        for key in ("current_balance_cents", "total_purchases_cents", "total_payments_cents", "financial_status")
        if before[key] != after[key]
    }
    if changed:
        current_app.logger.warning("Reconciled customer %s aggregates: %s", customer_id, changed)
    return {"customer": after, "changed": changed, "chain_problems": verify_chain(customer_id)}


def sync_after_append(transactions: list[CustomerTransaction], actor_id: int, *, operation: str) -> None:
    """
    Bring customer aggregates in line after ledger entries were committed.

    The ledger entries are authoritative and already durable. A failure
    here is logged as reconciliation debt and does not fail the caller;
    `flask ledger reconcile` repairs it.
    """
    customer_ids = sorted({txn.customer_id for txn in transactions})
    for customer_id in customer_ids:
        try:
            sync_customer_aggregates(customer_id, actor_id)
        except Exception:
            db.session.rollback()
            current_app.logger.exception(
                "Reconciliation debt: %s appended ledger entries %s but customer %s aggregates were not updated",
                operation, [txn.id for txn in transactions], customer_id,
            )
