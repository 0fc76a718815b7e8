# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""Sales API routes: lifecycle and line items"""

from flask import Blueprint, request, g

from ..services import actions
from ..decorators import require_actor
from .responses import action_response


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@require_actor
def create_sale_route():
    """
    Create new pending sale.

    Body: shop_id, sale_date, currency, [customer_id, discount_type,
    discount_value, tax_cents, notes, sale_type]
    """
    data = request.get_json(silent=True) or {}
    optional = {
        key: data[key]
        for key in ("customer_id", "discount_type", "discount_value", "tax_cents", "notes", "sale_type")
        if key in data
    }
    result = actions.create_sale(
        data.get("shop_id"),
        g.actor_id,
        data.get("sale_date"),
        data.get("currency"),
        **optional,
    )
    return action_response(result, "sale", 201)


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Get sale with items and payments."""
    return action_response(actions.get_sale(sale_id), "sale")


@sales_bp.delete("/<int:sale_id>")
@require_actor
def delete_sale_route(sale_id: int):
    """Soft-delete a completed or voided sale."""
    return action_response(actions.soft_delete_sale(sale_id, g.actor_id), "sale")


@sales_bp.post("/<int:sale_id>/items")
@require_actor
def add_item_route(sale_id: int):
    """
    Add an inventory item to a pending sale (reserves it).

    Body: item_id, unit_price_cents, [quantity]
    """
    data = request.get_json(silent=True) or {}
    result = actions.add_sale_item(
        sale_id,
        data.get("item_id"),
        data.get("unit_price_cents"),
        g.actor_id,
        quantity=data.get("quantity", 1),
    )
    return action_response(result, "item", 201)


@sales_bp.patch("/items/<int:sale_item_id>")
@require_actor
def update_item_route(sale_item_id: int):
    """Change a line's unit price and/or quantity."""
    data = request.get_json(silent=True) or {}
    result = actions.update_sale_item(
        sale_item_id,
        g.actor_id,
        unit_price_cents=data.get("unit_price_cents"),
        quantity=data.get("quantity"),
    )
    return action_response(result, "item")


@sales_bp.delete("/items/<int:sale_item_id>")
@require_actor
def remove_item_route(sale_item_id: int):
    """Remove a line and release its item. Returns the updated sale."""
    return action_response(actions.remove_sale_item(sale_item_id, g.actor_id), "sale")


@sales_bp.post("/<int:sale_id>/complete")
@require_actor
def complete_sale_route(sale_id: int):
    """Complete a pending sale: items become sold, customer is debited."""
    return action_response(actions.complete_sale(sale_id, g.actor_id), "sale")


@sales_bp.post("/<int:sale_id>/void")
@require_actor
def void_sale_route(sale_id: int):
    """
    Void a pending sale: items are released, payments are refunded.

    Body: reason
    """
    data = request.get_json(silent=True) or {}
    return action_response(actions.void_sale(sale_id, data.get("reason"), g.actor_id), "sale")
