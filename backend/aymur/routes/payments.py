# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..services import actions
from ..decorators import require_actor
from .responses import action_response


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")

METHOD_FIELDS = (
    "cheque_number",
    "cheque_date",
    "cheque_bank",
    "cash_amount_cents",
    "card_amount_cents",
    "transfer_amount_cents",
    "cheque_amount_cents",
)


@payments_bp.post("/")
@require_actor
def record_payment_route():
    """
    Record a payment against a sale.

    Body: sale_id, customer_id, payment_method, amount_cents, payment_date,
    [notes, cheque_*, *_amount_cents for mixed payments]
    """
    data = request.get_json(silent=True) or {}
    method_fields = {key: data[key] for key in METHOD_FIELDS if key in data}
    result = actions.record_payment(
        data.get("sale_id"),
        data.get("customer_id"),
        data.get("payment_method"),
        data.get("amount_cents"),
        data.get("payment_date"),
        g.actor_id,
        method_fields=method_fields,
        notes=data.get("notes"),
    )
    return action_response(result, "payment", 201)


@payments_bp.post("/<int:payment_id>/cheque-status")
@require_actor
def cheque_status_route(payment_id: int):
    """
    Settle a pending cheque.

    Body: status (cleared | bounced), [cleared_date]
    """
    data = request.get_json(silent=True) or {}
    result = actions.update_cheque_status(
        payment_id,
        data.get("status"),
        g.actor_id,
        cleared_date=data.get("cleared_date"),
    )
    return action_response(result, "payment")
