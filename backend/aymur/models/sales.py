from __future__ import annotations

from ..extensions import db
from aymur.time_utils import to_utc_z, to_iso_date


# Sale lifecycle
SALE_PENDING = "pending"
SALE_COMPLETED = "completed"
SALE_RETURNED = "returned"

# Payment status
PAYMENT_UNPAID = "unpaid"
PAYMENT_PARTIAL = "partial"
PAYMENT_PAID = "paid"

# Discount types
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"


class Sale(db.Model):
    """
    Sale document.

    LIFECYCLE: pending -> completed | returned. Items and totals are mutable
    only while pending. Rows are soft-deleted (deleted_at), never removed.

    TOTALS (integer cents):
        total_cents = max(0, subtotal_cents - discount_amount_cents + tax_cents)

    discount_value holds basis points for percentage discounts
    (10% -> 1000) and cents for fixed discounts.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "sale_number", name="uq_sales_shop_sale_number"),
        db.Index("ix_sales_shop_status_created", "shop_id", "status", "created_at"),
        db.CheckConstraint("status IN ('pending','completed','returned')", name="ck_sales_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # Human-readable number (e.g., "INV-20241204-0001")
    sale_number = db.Column(db.String(64), nullable=False)
    sale_date = db.Column(db.Date, nullable=False)
    sale_type = db.Column(db.String(16), nullable=False, default="sale")
    currency = db.Column(db.String(3), nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=True)
    discount_value = db.Column(db.Integer, nullable=True)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_UNPAID, index=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_PENDING, index=True)
    version = db.Column(db.Integer, nullable=False, default=1)

    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_by = db.Column(db.Integer, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by = db.Column(db.Integer, nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    shop = db.relationship("Shop", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "sale_number": self.sale_number,
            "sale_date": to_iso_date(self.sale_date),
            "sale_type": self.sale_type,
            "currency": self.currency,
            "subtotal_cents": self.subtotal_cents,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_amount_cents": self.discount_amount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "payment_status": self.payment_status,
            "status": self.status,
            "version": self.version,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_by": self.updated_by,
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at),
        }


class SaleItem(db.Model):
    """
    Line item on a sale: exactly one inventory item per line.

    Descriptive fields are a snapshot taken when the item was added so
    historic sales stay readable after the inventory row changes.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "inventory_item_id", name="uq_sale_items_sale_item"),
        db.CheckConstraint("quantity >= 1", name="ck_sale_items_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    line_total_cents = db.Column(db.Integer, nullable=False)

    # Snapshot
    item_name = db.Column(db.String(255), nullable=False)
    item_barcode = db.Column(db.String(64), nullable=True)
    weight_grams = db.Column(db.Numeric(10, 3), nullable=True)
    metal_type = db.Column(db.String(64), nullable=True)
    metal_purity = db.Column(db.String(64), nullable=True)

    created_by = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True))
    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "sale_id": self.sale_id,
            "inventory_item_id": self.inventory_item_id,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
            "item_name": self.item_name,
            "item_barcode": self.item_barcode,
            "weight_grams": str(self.weight_grams) if self.weight_grams is not None else None,
            "metal_type": self.metal_type,
            "metal_purity": self.metal_purity,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class SalePayment(db.Model):
    """
    Payment recorded against a sale.

    PAYMENT METHODS: cash, card, bank_transfer, cheque, mixed.
    Rows are written once by the payment recorder; cheque_status /
    cheque_cleared_date are the only columns updated afterwards.
    """
    __tablename__ = "sale_payments"
    __table_args__ = (
        db.Index("ix_sale_payments_sale_created", "sale_id", "created_at"),
        db.CheckConstraint("amount_cents > 0", name="ck_sale_payments_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Mixed payment components
    cash_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    card_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    transfer_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    cheque_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Cheque details
    cheque_number = db.Column(db.String(50), nullable=True)
    cheque_date = db.Column(db.Date, nullable=True)
    cheque_bank = db.Column(db.String(100), nullable=True)
    cheque_status = db.Column(db.String(16), nullable=True)  # pending, cleared, bounced
    cheque_cleared_date = db.Column(db.Date, nullable=True)

    payment_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "payment_method": self.payment_method,
            "amount_cents": self.amount_cents,
            "cash_amount_cents": self.cash_amount_cents,
            "card_amount_cents": self.card_amount_cents,
            "transfer_amount_cents": self.transfer_amount_cents,
            "cheque_amount_cents": self.cheque_amount_cents,
            "cheque_number": self.cheque_number,
            "cheque_date": to_iso_date(self.cheque_date),
            "cheque_bank": self.cheque_bank,
            "cheque_status": self.cheque_status,
            "cheque_cleared_date": to_iso_date(self.cheque_cleared_date),
            "payment_date": to_iso_date(self.payment_date),
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
