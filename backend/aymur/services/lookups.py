# Overview: Shared read helpers for sales, sale lines and customers (soft-delete aware).

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Sale, SaleItem
from ..models.sales import SALE_PENDING
from .errors import InvalidStatusError, NotFoundError


def get_sale(sale_id: int) -> Sale:
    sale = (
        db.session.query(Sale)
        .filter(Sale.id == sale_id, Sale.deleted_at.is_(None))
        .populate_existing()
        .first()
    )
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def require_pending(sale: Sale, message: str) -> None:
    if sale.status != SALE_PENDING:
        raise InvalidStatusError(message, details={"sale_id": sale.id, "status": sale.status})


def get_sale_item(line_id: int) -> SaleItem:
    line = db.session.query(SaleItem).filter_by(id=line_id).populate_existing().first()
    if not line:
        raise NotFoundError("Sale item not found", details={"sale_item_id": line_id})
    return line


def get_sale_items(sale_id: int) -> list[SaleItem]:
    return (
        db.session.query(SaleItem)
        .filter_by(sale_id=sale_id)
        .order_by(SaleItem.id)
        .all()
    )


def get_customer(customer_id: int, shop_id: int | None = None) -> Customer:
    q = db.session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.deleted_at.is_(None),
    )
    if shop_id is not None:
        q = q.filter(Customer.shop_id == shop_id)
    customer = q.populate_existing().first()
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer
