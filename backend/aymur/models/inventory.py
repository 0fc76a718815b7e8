from __future__ import annotations

from ..extensions import db
from aymur.time_utils import to_utc_z


# Availability states (only available/reserved/sold are written by the sale engine)
ITEM_AVAILABLE = "available"
ITEM_RESERVED = "reserved"
ITEM_SOLD = "sold"
ITEM_WORKSHOP = "workshop"
ITEM_TRANSFERRED = "transferred"
ITEM_DAMAGED = "damaged"
ITEM_RETURNED = "returned"

ITEM_STATUSES = (
    ITEM_AVAILABLE,
    ITEM_RESERVED,
    ITEM_SOLD,
    ITEM_WORKSHOP,
    ITEM_TRANSFERRED,
    ITEM_DAMAGED,
    ITEM_RETURNED,
)


class InventoryItem(db.Model):
    """
    A single serialized piece of stock (one physical item per row).

    CONCURRENCY: status changes go through compare_and_swap on `version`;
    the ORM never flushes status directly.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_shop_status", "shop_id", "status"),
        db.CheckConstraint(
            "status IN ('available','reserved','sold','workshop','transferred','damaged','returned')",
            name="ck_inventory_items_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    item_name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True, index=True)
    weight_grams = db.Column(db.Numeric(10, 3), nullable=True)
    metal_type = db.Column(db.String(64), nullable=True)
    metal_purity = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ITEM_AVAILABLE)
    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    shop = db.relationship("Shop", backref=db.backref("inventory_items", lazy=True))

    def snapshot(self) -> dict:
        """Descriptive fields copied onto a sale line at add time."""
        return {
            "item_name": self.item_name,
            "item_barcode": self.barcode,
            "weight_grams": self.weight_grams,
            "metal_type": self.metal_type,
            "metal_purity": self.metal_purity,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "item_name": self.item_name,
            "barcode": self.barcode,
            "weight_grams": str(self.weight_grams) if self.weight_grams is not None else None,
            "metal_type": self.metal_type,
            "metal_purity": self.metal_purity,
            "status": self.status,
            "version": self.version,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "updated_by": self.updated_by,
        }
