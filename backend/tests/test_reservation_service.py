"""Inventory reservation protocol: versioned status transitions."""

import pytest

from aymur.services import reservation_service
from aymur.services.errors import (
    ConcurrentModificationError,
    ItemUnavailableError,
    NotFoundError,
)


def test_reserve_moves_available_to_reserved_and_bumps_version(db_session, make_item, actor_id):
    item = make_item()

    new_version = reservation_service.reserve(item.id, 1, actor_id)

    current = reservation_service.get_item(item.id)
    assert new_version == 2
    assert current.status == "reserved"
    assert current.version == 2
    assert current.updated_by == actor_id


def test_reserve_with_stale_version_is_a_concurrent_modification(db_session, make_item, actor_id):
    item = make_item()

    with pytest.raises(ConcurrentModificationError):
        reservation_service.reserve(item.id, 7, actor_id)

    current = reservation_service.get_item(item.id)
    assert current.status == "available"
    assert current.version == 1


@pytest.mark.parametrize("status", ["reserved", "sold", "workshop", "damaged"])
def test_reserve_of_unavailable_item_fails(db_session, make_item, actor_id, status):
    item = make_item(status=status)

    with pytest.raises(ItemUnavailableError):
        reservation_service.reserve(item.id, 1, actor_id)


def test_second_reservation_with_same_version_loses(db_session, make_item, actor_id):
    item = make_item()
    reservation_service.reserve(item.id, 1, actor_id)

    with pytest.raises(ItemUnavailableError):
        reservation_service.reserve(item.id, 1, actor_id)

    assert reservation_service.get_item(item.id).version == 2


def test_release_returns_item_to_available(db_session, make_item, actor_id):
    item = make_item()
    reservation_service.reserve(item.id, 1, actor_id)

    reservation_service.release(item.id, actor_id)

    current = reservation_service.get_item(item.id)
    assert current.status == "available"
    assert current.version == 3


def test_release_requires_reserved_status(db_session, make_item, actor_id):
    item = make_item(status="sold")

    with pytest.raises(ItemUnavailableError):
        reservation_service.release(item.id, actor_id)


def test_finalize_marks_all_items_sold(db_session, make_item, actor_id):
    items = [make_item(), make_item()]
    for item in items:
        reservation_service.reserve(item.id, 1, actor_id)

    reservation_service.finalize([i.id for i in items], actor_id)

    for item in items:
        current = reservation_service.get_item(item.id)
        assert current.status == "sold"
        assert current.version == 3


def test_finalize_is_all_or_nothing(db_session, make_item, actor_id):
    reserved = make_item()
    reservation_service.reserve(reserved.id, 1, actor_id)
    still_available = make_item()

    with pytest.raises(ConcurrentModificationError):
        reservation_service.finalize([reserved.id, still_available.id], actor_id)

    assert reservation_service.get_item(reserved.id).status == "reserved"
    assert reservation_service.get_item(still_available.id).status == "available"


def test_release_many(db_session, make_item, actor_id):
    items = [make_item(), make_item()]
    for item in items:
        reservation_service.reserve(item.id, 1, actor_id)

    reservation_service.release_many([i.id for i in items], actor_id)

    assert {reservation_service.get_item(i.id).status for i in items} == {"available"}


def test_release_many_skips_items_moved_by_other_flows(db_session, make_item, actor_id, caplog):
    reserved = make_item()
    reservation_service.reserve(reserved.id, 1, actor_id)
    damaged = make_item(status="damaged")

    released = reservation_service.release_many([reserved.id, damaged.id], actor_id)

    assert released == [reserved.id]
    assert reservation_service.get_item(reserved.id).status == "available"
    assert reservation_service.get_item(damaged.id).status == "damaged"
    assert "no longer reserved" in caplog.text


def test_release_if_reserved(db_session, make_item, actor_id):
    item = make_item()
    reservation_service.reserve(item.id, 1, actor_id)
    workshop = make_item(status="workshop")

    assert reservation_service.release_if_reserved(item.id, actor_id) is True
    assert reservation_service.release_if_reserved(workshop.id, actor_id) is False

    assert reservation_service.get_item(item.id).status == "available"
    current = reservation_service.get_item(workshop.id)
    assert (current.status, current.version) == ("workshop", 1)


def test_transition_table():
    assert reservation_service.can_transition(from_status="available", to_status="reserved")
    assert reservation_service.can_transition(from_status="reserved", to_status="sold")
    assert reservation_service.can_transition(from_status="reserved", to_status="available")
    assert not reservation_service.can_transition(from_status="sold", to_status="available")
    assert not reservation_service.can_transition(from_status="available", to_status="sold")


def test_get_item_scoped_to_shop(db_session, make_item, other_shop):
    item = make_item()

    with pytest.raises(NotFoundError):
        reservation_service.get_item(item.id, shop_id=other_shop.id)
