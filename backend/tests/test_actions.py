"""ActionResult surface: every outcome is data or a stable error code."""

from sqlalchemy.exc import OperationalError

from aymur.services import actions, sales_service
from aymur.time_utils import today_utc


def test_success_carries_serialized_data(db_session, shop, actor_id):
    result = actions.create_sale(shop.id, actor_id, "2024-12-04", "USD")

    assert result.ok
    assert result.error is None
    assert result.data["status"] == "pending"
    assert result.data["sale_number"] == f"INV-{today_utc():%Y%m%d}-0001"


def test_validation_failure(db_session, shop, actor_id):
    result = actions.create_sale(shop.id, actor_id, "2024-12-04", "DOLLARS")

    assert not result.ok
    assert result.code == "validation_error"
    assert "3-letter" in result.error


def test_not_found_failure_has_details(db_session, actor_id):
    result = actions.complete_sale(5555, actor_id)

    assert result.code == "not_found"
    assert result.details == {"sale_id": 5555}


def test_no_items_failure(db_session, make_sale, actor_id):
    sale = make_sale()
    assert actions.complete_sale(sale.id, actor_id).code == "no_items"


def test_store_errors_become_database_error(db_session, make_sale, actor_id, monkeypatch, caplog):
    sale = make_sale()

    def _locked(sale_id, actor_id):
        raise OperationalError("UPDATE sales", {}, Exception("database is locked"))

    monkeypatch.setattr(sales_service, "complete_sale", _locked)
    result = actions.complete_sale(sale.id, actor_id)

    assert result.code == "database_error"
    assert "Database error in complete_sale" in caplog.text


def test_anything_else_becomes_unexpected_error(db_session, make_sale, actor_id, monkeypatch, caplog):
    sale = make_sale()

    def _bug(sale_id, reason, actor_id):
        raise KeyError("oops")

    monkeypatch.setattr(sales_service, "void_sale", _bug)
    result = actions.void_sale(sale.id, "reason", actor_id)

    assert not result.ok
    assert result.code == "unexpected_error"
    assert "Unexpected error in void_sale" in caplog.text


def test_customer_reads(db_session, customer):
    balance = actions.get_customer_balance(customer.id)
    assert balance.ok
    assert balance.data["financial_status"] == "paid"

    assert actions.list_customer_transactions(customer.id).data == []
    assert actions.verify_customer_ledger(customer.id).data["ok"] is True
    assert actions.get_customer_balance(123456).code == "not_found"
    assert actions.list_customer_transactions("abc").code == "validation_error"
