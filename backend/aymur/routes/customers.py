# Overview: Flask API routes for customer balances and ledger reads.

from flask import Blueprint, request

from ..services import actions
from .responses import action_response


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/<int:customer_id>/balance")
def customer_balance_route(customer_id: int):
    return action_response(actions.get_customer_balance(customer_id), "balance")


@customers_bp.get("/<int:customer_id>/transactions")
def customer_transactions_route(customer_id: int):
    """Ledger entries in chain order. Query: limit"""
    result = actions.list_customer_transactions(customer_id, request.args.get("limit"))
    return action_response(result, "transactions")


@customers_bp.get("/<int:customer_id>/ledger/verify")
def verify_ledger_route(customer_id: int):
    return action_response(actions.verify_customer_ledger(customer_id), "verification")
