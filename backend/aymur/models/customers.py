from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from aymur.time_utils import to_utc_z


FINANCIAL_STATUS_PAID = "paid"
FINANCIAL_STATUS_OWES = "owes"
FINANCIAL_STATUS_CREDIT = "credit"


class Customer(db.Model):
    """
    Customer master data with denormalized financial aggregates.

    The aggregates (current_balance_cents, total_purchases_cents,
    total_payments_cents, financial_status) are a cache of the
    customer_transactions ledger; the ledger is authoritative.
    Aggregate writes go through compare_and_swap on `version`.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_shop_id", "shop_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False)

    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    current_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    total_purchases_cents = db.Column(db.Integer, nullable=False, default=0)
    total_payments_cents = db.Column(db.Integer, nullable=False, default=0)
    financial_status = db.Column(db.String(16), nullable=False, default=FINANCIAL_STATUS_PAID)

    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    shop = db.relationship("Shop", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "full_name": self.full_name,
            "phone": self.phone,
            "email": self.email,
            "current_balance_cents": self.current_balance_cents,
            "total_purchases_cents": self.total_purchases_cents,
            "total_payments_cents": self.total_payments_cents,
            "financial_status": self.financial_status,
            "version": self.version,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CustomerTransaction(db.Model):
    """
    Append-only ledger of customer financial movements.

    TRANSACTION TYPES:
    - sale: completed sale charged to the customer (debit)
    - payment: payment received against a sale (credit)
    - refund: money handed back when a paid pending sale is voided (debit)
    - adjustment: manual correction

    BALANCE CHAIN (per customer, ordered by sequence_number):
        balance_after[n] = balance_after[n-1] + debit_cents - credit_cents
    with balance_after[0] = 0 before the first entry.

    IMMUTABLE: Records are never updated or deleted (enforced by the
    mapper listeners below).
    """
    __tablename__ = "customer_transactions"
    __table_args__ = (
        db.UniqueConstraint("customer_id", "sequence_number", name="uq_customer_txns_customer_seq"),
        db.Index("ix_customer_txns_customer_created", "customer_id", "created_at"),
        db.CheckConstraint("debit_cents >= 0 AND credit_cents >= 0", name="ck_customer_txns_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    # 1-based position in this customer's chain
    sequence_number = db.Column(db.Integer, nullable=False)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_after_cents = db.Column(db.Integer, nullable=False)

    description = db.Column(db.String(500), nullable=True)

    created_by = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "sequence_number": self.sequence_number,
            "transaction_type": self.transaction_type,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
            "balance_after_cents": self.balance_after_cents,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class ImmutableLedgerError(RuntimeError):
    """Raised when something tries to UPDATE or DELETE a ledger row."""


@event.listens_for(CustomerTransaction, "before_update")
def _reject_ledger_update(mapper, connection, target):
    raise ImmutableLedgerError("customer_transactions rows are immutable")


@event.listens_for(CustomerTransaction, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise ImmutableLedgerError("customer_transactions rows cannot be deleted")
