"""Sale line items: reservation on add, release on remove, totals kept in step."""

import pytest

from aymur.extensions import db
from aymur.models import SaleItem
from aymur.services import payment_service, reservation_service, sale_items_service, sales_service
from aymur.services.errors import (
    ConcurrentModificationError,
    DuplicateItemError,
    InvalidStatusError,
    ItemUnavailableError,
    NotFoundError,
    ValidationError,
)
from aymur.services.lookups import get_sale


def _lines(sale_id):
    return db.session.query(SaleItem).filter_by(sale_id=sale_id).all()


def test_add_item_reserves_and_snapshots(db_session, make_sale, make_item, actor_id):
    sale = make_sale()
    item = make_item(name="Bangle 22k")

    line = sale_items_service.add_sale_item(sale.id, item.id, 10000, 1, actor_id)

    assert line.item_name == "Bangle 22k"
    assert line.item_barcode == item.barcode
    assert line.metal_purity == "21k"
    assert line.line_total_cents == 10000
    assert reservation_service.get_item(item.id).status == "reserved"

    current = get_sale(sale.id)
    assert current.subtotal_cents == 10000
    assert current.total_cents == 10000
    assert current.version == 2


def test_snapshot_survives_item_rename(db_session, make_sale, make_item, actor_id):
    sale = make_sale()
    item = make_item(name="Old Name")
    line = sale_items_service.add_sale_item(sale.id, item.id, 500, 1, actor_id)

    item = reservation_service.get_item(item.id)
    item.item_name = "New Name"
    db.session.commit()

    assert sale_items_service.get_sale_item(line.id).item_name == "Old Name"


def test_totals_apply_discount_and_tax(db_session, make_sale, make_item, actor_id):
    sale = make_sale(discount_type="percentage", discount_value=1000, tax_cents=250)

    sale_items_service.add_sale_item(sale.id, make_item().id, 10000, 1, actor_id)
    sale_items_service.add_sale_item(sale.id, make_item().id, 2500, 2, actor_id)

    current = get_sale(sale.id)
    assert current.subtotal_cents == 15000
    assert current.discount_amount_cents == 1500
    assert current.total_cents == 13750


def test_adding_same_item_twice_is_a_duplicate(db_session, make_sale, make_item, actor_id):
    sale = make_sale()
    item = make_item()
    sale_items_service.add_sale_item(sale.id, item.id, 1000, 1, actor_id)

    with pytest.raises(DuplicateItemError):
        sale_items_service.add_sale_item(sale.id, item.id, 1000, 1, actor_id)

    assert len(_lines(sale.id)) == 1


def test_item_reserved_by_another_sale_is_unavailable(db_session, make_sale, make_item, actor_id):
    item = make_item()
    first = make_sale()
    second = make_sale()
    sale_items_service.add_sale_item(first.id, item.id, 1000, 1, actor_id)

    with pytest.raises(ItemUnavailableError):
        sale_items_service.add_sale_item(second.id, item.id, 1000, 1, actor_id)

    assert _lines(second.id) == []
    assert get_sale(second.id).subtotal_cents == 0


def test_failed_reservation_leaves_no_line(db_session, make_sale, make_item, actor_id, monkeypatch):
    sale = make_sale()
    item = make_item()

    def _lose_race(item_id, expected_version, actor_id, *, commit=True):
        raise ConcurrentModificationError("inventory_items modified concurrently")

    monkeypatch.setattr(reservation_service, "reserve", _lose_race)

    with pytest.raises(ConcurrentModificationError):
        sale_items_service.add_sale_item(sale.id, item.id, 1000, 1, actor_id)

    assert _lines(sale.id) == []
    assert reservation_service.get_item(item.id).status == "available"


def test_completion_before_the_totals_write_rejects_the_addition(
    db_session, make_sale, make_item, actor_id, monkeypatch
):
    sale = make_sale()
    first = make_item()
    sale_items_service.add_sale_item(sale.id, first.id, 10000, 1, actor_id)
    racer = make_item()

    real_cas = sale_items_service.compare_and_swap
    raced = []

    def _completed_meanwhile(model, row_id, expected_version, patch, **kwargs):
        if not raced:
            raced.append(row_id)
            # The competing completion commits first; this writer's pending work is discarded
            db.session.rollback()
            sales_service.complete_sale(sale.id, actor_id)
            raise ConcurrentModificationError("sales modified concurrently")
        return real_cas(model, row_id, expected_version, patch, **kwargs)

    monkeypatch.setattr(sale_items_service, "compare_and_swap", _completed_meanwhile)

    with pytest.raises(InvalidStatusError):
        sale_items_service.add_sale_item(sale.id, racer.id, 5000, 1, actor_id)

    current = get_sale(sale.id)
    assert current.status == "completed"
    assert (current.subtotal_cents, current.total_cents) == (10000, 10000)
    assert [line.inventory_item_id for line in _lines(sale.id)] == [first.id]
    assert reservation_service.get_item(first.id).status == "sold"
    racer_now = reservation_service.get_item(racer.id)
    assert (racer_now.status, racer_now.version) == ("available", 1)


def test_exhausted_totals_retries_leave_no_line_or_reservation(db_session, make_sale, make_item, actor_id, monkeypatch):
    sale = make_sale()
    item = make_item()

    def _always_conflict(model, row_id, expected_version, patch, **kwargs):
        db.session.rollback()
        raise ConcurrentModificationError("sales modified concurrently")

    monkeypatch.setattr(sale_items_service, "compare_and_swap", _always_conflict)

    with pytest.raises(ConcurrentModificationError):
        sale_items_service.add_sale_item(sale.id, item.id, 1000, 1, actor_id)

    assert _lines(sale.id) == []
    assert reservation_service.get_item(item.id).status == "available"
    assert get_sale(sale.id).subtotal_cents == 0


def test_add_to_missing_or_closed_sale(db_session, make_sale, make_item, actor_id):
    item = make_item()
    with pytest.raises(NotFoundError):
        sale_items_service.add_sale_item(999999, item.id, 1000, 1, actor_id)

    sale = make_sale()
    sales_service.void_sale(sale.id, "customer left", actor_id)
    with pytest.raises(InvalidStatusError):
        sale_items_service.add_sale_item(sale.id, item.id, 1000, 1, actor_id)
    assert reservation_service.get_item(item.id).status == "available"


def test_add_validates_before_touching_the_store(db_session, make_sale, make_item, actor_id):
    sale = make_sale()
    item = make_item()

    with pytest.raises(ValidationError, match="at least 1"):
        sale_items_service.add_sale_item(sale.id, item.id, 1000, 0, actor_id)
    with pytest.raises(ValidationError):
        sale_items_service.add_sale_item(sale.id, item.id, -5, 1, actor_id)

    assert reservation_service.get_item(item.id).version == 1


def test_remove_item_releases_and_recomputes(db_session, make_sale, make_item, actor_id):
    sale = make_sale()
    a = make_item()
    b = make_item()
    line_a = sale_items_service.add_sale_item(sale.id, a.id, 10000, 1, actor_id)
    sale_items_service.add_sale_item(sale.id, b.id, 5000, 2, actor_id)

    updated = sale_items_service.remove_sale_item(line_a.id, actor_id)

    assert updated.subtotal_cents == 10000
    assert updated.total_cents == 10000
    assert reservation_service.get_item(a.id).status == "available"
    assert reservation_service.get_item(b.id).status == "reserved"
    assert [line.inventory_item_id for line in _lines(sale.id)] == [b.id]


def test_removed_item_can_be_added_again(db_session, make_sale, make_item, actor_id):
    sale = make_sale()
    item = make_item()
    line = sale_items_service.add_sale_item(sale.id, item.id, 1000, 1, actor_id)
    sale_items_service.remove_sale_item(line.id, actor_id)

    again = sale_items_service.add_sale_item(sale.id, item.id, 1200, 1, actor_id)

    assert again.unit_price_cents == 1200
    assert get_sale(sale.id).subtotal_cents == 1200


def test_remove_missing_line(db_session, actor_id):
    with pytest.raises(NotFoundError):
        sale_items_service.remove_sale_item(424242, actor_id)


def test_remove_line_whose_item_was_damaged(db_session, make_sale, make_item, actor_id):
    sale = make_sale()
    item = make_item()
    line = sale_items_service.add_sale_item(sale.id, item.id, 4000, 1, actor_id)
    moved = reservation_service.get_item(item.id)
    moved.status = "damaged"
    db.session.commit()

    updated = sale_items_service.remove_sale_item(line.id, actor_id)

    assert updated.subtotal_cents == 0
    assert _lines(sale.id) == []
    assert reservation_service.get_item(item.id).status == "damaged"


def test_payment_status_follows_pending_total(db_session, make_sale, make_item, customer, actor_id):
    sale = make_sale(customer_id=customer.id)
    sale_items_service.add_sale_item(sale.id, make_item().id, 3000, 1, actor_id)
    payment_service.record_payment(sale.id, customer.id, "cash", 3000, "2024-12-04", actor_id)
    assert get_sale(sale.id).payment_status == "paid"

    extra = sale_items_service.add_sale_item(sale.id, make_item().id, 2000, 1, actor_id)
    assert get_sale(sale.id).payment_status == "partial"

    sale_items_service.remove_sale_item(extra.id, actor_id)
    assert get_sale(sale.id).payment_status == "paid"


def test_update_item_changes_line_and_totals_only(db_session, make_sale, make_item, actor_id):
    sale = make_sale(discount_type="fixed", discount_value=1000)
    item = make_item()
    line = sale_items_service.add_sale_item(sale.id, item.id, 5000, 1, actor_id)
    item_version = reservation_service.get_item(item.id).version

    updated = sale_items_service.update_sale_item(line.id, actor_id, unit_price_cents=4000, quantity=3)

    assert updated.unit_price_cents == 4000
    assert updated.quantity == 3
    assert updated.line_total_cents == 12000
    current = get_sale(sale.id)
    assert current.subtotal_cents == 12000
    assert current.discount_amount_cents == 1000
    assert current.total_cents == 11000
    assert reservation_service.get_item(item.id).version == item_version


def test_update_item_requires_a_change(db_session, make_sale, make_item, actor_id):
    sale = make_sale()
    line = sale_items_service.add_sale_item(sale.id, make_item().id, 5000, 1, actor_id)

    with pytest.raises(ValidationError):
        sale_items_service.update_sale_item(line.id, actor_id)


def test_items_frozen_after_completion(db_session, make_sale, make_item, actor_id):
    sale = make_sale()
    line = sale_items_service.add_sale_item(sale.id, make_item().id, 5000, 1, actor_id)
    sales_service.complete_sale(sale.id, actor_id)

    with pytest.raises(InvalidStatusError):
        sale_items_service.update_sale_item(line.id, actor_id, quantity=2)
    with pytest.raises(InvalidStatusError):
        sale_items_service.remove_sale_item(line.id, actor_id)


def test_subtotal_always_matches_lines(db_session, make_sale, make_item, actor_id):
    sale = make_sale(discount_type="percentage", discount_value=750, tax_cents=99)
    lines = [
        sale_items_service.add_sale_item(sale.id, make_item().id, price, qty, actor_id)
        for price, qty in [(1999, 1), (2550, 2), (10, 7)]
    ]
    sale_items_service.update_sale_item(lines[1].id, actor_id, quantity=1)
    sale_items_service.remove_sale_item(lines[0].id, actor_id)

    current = get_sale(sale.id)
    line_sum = sum(line.line_total_cents for line in _lines(sale.id))
    assert current.subtotal_cents == line_sum == 2620
    assert current.total_cents == max(0, line_sum - current.discount_amount_cents + 99)
