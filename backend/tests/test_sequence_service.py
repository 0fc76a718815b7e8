"""Sale number allocation: per shop, per day, prefixed and zero-padded."""

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from aymur.models import Sale, SaleNumberSequence
from aymur.services import sales_service, sequence_service
from aymur.services.errors import DatabaseError, ValidationError
from aymur.time_utils import today_utc


DAY = date(2024, 12, 4)


def test_format_sale_number():
    assert sequence_service.format_sale_number("INV-", DAY, 1) == "INV-20241204-0001"
    assert sequence_service.format_sale_number("GLD-", DAY, 123, pad=6) == "GLD-20241204-000123"


def test_numbers_increase_within_a_day(db_session, shop):
    first = sequence_service.next_sale_number(shop.id, DAY)
    second = sequence_service.next_sale_number(shop.id, DAY)
    third = sequence_service.next_sale_number(shop.id, DAY)

    assert [first, second, third] == [
        "INV-20241204-0001",
        "INV-20241204-0002",
        "INV-20241204-0003",
    ]
    counter = db_session.query(SaleNumberSequence).filter_by(shop_id=shop.id, sequence_date=DAY).one()
    assert counter.next_number == 4


def test_sequence_restarts_each_day(db_session, shop):
    sequence_service.next_sale_number(shop.id, DAY)
    sequence_service.next_sale_number(shop.id, DAY)

    assert sequence_service.next_sale_number(shop.id, date(2024, 12, 5)) == "INV-20241205-0001"
    assert sequence_service.next_sale_number(shop.id, DAY) == "INV-20241204-0003"


def test_shops_have_independent_sequences_and_prefixes(db_session, shop, other_shop):
    assert sequence_service.next_sale_number(shop.id, DAY) == "INV-20241204-0001"
    assert sequence_service.next_sale_number(other_shop.id, DAY) == "GLD-20241204-0001"
    assert sequence_service.next_sale_number(other_shop.id, DAY) == "GLD-20241204-0002"
    assert sequence_service.next_sale_number(shop.id, DAY) == "INV-20241204-0002"


def test_default_prefix_comes_from_config(app, db_session, shop):
    app.config["DEFAULT_INVOICE_PREFIX"] = "S-"
    try:
        assert sequence_service.next_sale_number(shop.id, DAY) == "S-20241204-0001"
    finally:
        app.config["DEFAULT_INVOICE_PREFIX"] = "INV-"


def test_missing_shop_id_is_rejected(db_session):
    with pytest.raises(ValidationError):
        sequence_service.next_sale_number(None, DAY)


def test_sale_number_defaults_to_today(db_session, shop):
    assert sequence_service.next_sale_number(shop.id) == f"INV-{today_utc():%Y%m%d}-0001"

    counter = db_session.query(SaleNumberSequence).filter_by(shop_id=shop.id).one()
    assert counter.sequence_date == today_utc()


def test_store_failure_surfaces_as_database_error(db_session, shop, actor_id, monkeypatch):
    def _locked(shop_id, on):
        raise OperationalError("UPDATE sale_number_sequences", {}, Exception("database is locked"))

    monkeypatch.setattr(sequence_service, "_allocate", _locked)

    with pytest.raises(DatabaseError):
        sequence_service.next_sale_number(shop.id)
    with pytest.raises(DatabaseError):
        sales_service.create_sale(shop.id, actor_id, "2024-12-04", "USD")

    assert db_session.query(Sale).count() == 0
