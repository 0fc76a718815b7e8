# Overview: Public sale-engine operations; wraps the services and returns ActionResult instead of raising.

"""
Every operation here returns ActionResult:

    ok=True   data = the created/updated entity as a dict
    ok=False  error/code/details from the failure

SaleCoreError subclasses carry their own code. Store failures that escape a
service become database_error; anything else becomes unexpected_error and
is logged with its traceback.
"""

from __future__ import annotations

from functools import wraps

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from aymur.validation import optional_id, require_id
from . import ledger_service, payment_service, sale_items_service, sales_service
from .errors import ActionResult, DatabaseError, SaleCoreError, UnexpectedError
from .lookups import get_customer


def _action(func):
    @wraps(func)
    def wrapper(*args, **kwargs) -> ActionResult:
        try:
            return ActionResult.success(func(*args, **kwargs))
        except SaleCoreError as exc:
            return ActionResult.failure(exc)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Database error in %s", func.__name__)
            return ActionResult.failure(DatabaseError("A database error occurred"))
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Unexpected error in %s", func.__name__)
            return ActionResult.failure(UnexpectedError("An unexpected error occurred"))
    return wrapper


# =============================================================================
# SALES
# =============================================================================

@_action
def create_sale(shop_id, actor_id, sale_date, currency, **fields):
    return sales_service.create_sale(shop_id, actor_id, sale_date, currency, **fields).to_dict()


@_action
def get_sale(sale_id):
    return sales_service.get_sale_detail(sale_id)


@_action
def add_sale_item(sale_id, item_id, unit_price_cents, actor_id, quantity=1):
    return sale_items_service.add_sale_item(sale_id, item_id, unit_price_cents, quantity, actor_id).to_dict()


@_action
def remove_sale_item(sale_item_id, actor_id):
    return sale_items_service.remove_sale_item(sale_item_id, actor_id).to_dict()


@_action
def update_sale_item(sale_item_id, actor_id, unit_price_cents=None, quantity=None):
    return sale_items_service.update_sale_item(
        sale_item_id, actor_id, unit_price_cents=unit_price_cents, quantity=quantity
    ).to_dict()


@_action
def complete_sale(sale_id, actor_id):
    return sales_service.complete_sale(sale_id, actor_id).to_dict()


@_action
def void_sale(sale_id, reason, actor_id):
    return sales_service.void_sale(sale_id, reason, actor_id).to_dict()


@_action
def soft_delete_sale(sale_id, actor_id):
    sales_service.soft_delete_sale(sale_id, actor_id)
    return {"id": sale_id, "deleted": True}


# =============================================================================
# PAYMENTS
# =============================================================================

@_action
def record_payment(sale_id, customer_id, method, amount_cents, payment_date, actor_id, method_fields=None, notes=None):
    return payment_service.record_payment(
        sale_id, customer_id, method, amount_cents, payment_date, actor_id,
        method_fields=method_fields, notes=notes,
    ).to_dict()


@_action
def update_cheque_status(payment_id, status, actor_id, cleared_date=None):
    return payment_service.update_cheque_status(payment_id, status, actor_id, cleared_date=cleared_date).to_dict()


# =============================================================================
# CUSTOMERS / LEDGER
# =============================================================================

@_action
def get_customer_balance(customer_id):
    customer = get_customer(require_id(customer_id, "customer_id"))
    return {
        "customer_id": customer.id,
        "total_purchases_cents": customer.total_purchases_cents,
        "total_payments_cents": customer.total_payments_cents,
        "current_balance_cents": customer.current_balance_cents,
        "financial_status": customer.financial_status,
    }


@_action
def list_customer_transactions(customer_id, limit=None):
    customer_id = require_id(customer_id, "customer_id")
    limit = optional_id(limit, "limit")
    get_customer(customer_id)
    return [txn.to_dict() for txn in ledger_service.list_transactions(customer_id, limit)]


@_action
def verify_customer_ledger(customer_id):
    customer_id = require_id(customer_id, "customer_id")
    get_customer(customer_id)
    problems = ledger_service.verify_chain(customer_id)
    return {"customer_id": customer_id, "ok": not problems, "problems": problems}


@_action
def reconcile_customer(customer_id, actor_id):
    customer_id = require_id(customer_id, "customer_id")
    return ledger_service.reconcile_customer(customer_id, actor_id)
