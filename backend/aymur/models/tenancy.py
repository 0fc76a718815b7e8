from __future__ import annotations

from ..extensions import db
from aymur.time_utils import to_utc_z


class Shop(db.Model):
    """
    Tenant boundary: every sale, item and customer belongs to exactly one shop.

    The host application enforces shop scoping for the authenticated actor;
    this package only carries shop_id through so queries stay scoped.
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="USD")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "currency": self.currency,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class ShopSetting(db.Model):
    """Per-shop configuration consumed by the sale engine (invoice prefix)."""
    __tablename__ = "shop_settings"
    __table_args__ = (
        db.UniqueConstraint("shop_id", name="uq_shop_settings_shop"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    # NULL / empty falls back to Config.DEFAULT_INVOICE_PREFIX
    invoice_prefix = db.Column(db.String(16), nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("settings", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "invoice_prefix": self.invoice_prefix,
            "updated_at": to_utc_z(self.updated_at),
        }


class SaleNumberSequence(db.Model):
    """
    Atomic per-shop, per-day sale number counter.

    One row per (shop, business day). Allocation is a single
    UPDATE ... SET next_number = next_number + 1, so two concurrent
    creators can never read the same number.
    """
    __tablename__ = "sale_number_sequences"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "sequence_date", name="uq_sale_number_seq_shop_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    sequence_date = db.Column(db.Date, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "sequence_date": self.sequence_date.isoformat() if self.sequence_date else None,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
