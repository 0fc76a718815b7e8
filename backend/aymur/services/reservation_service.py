# Overview: Service-layer operations for inventory reservation; owns item availability transitions.

"""
Inventory reservation protocol.

STATE MACHINE (edges written by the sale engine):
    available --reserve--> reserved --finalize--> sold
    reserved  --release--> available

Every transition is one conditional UPDATE guarded by the item's version
(and its expected current status), so two concurrent reservations of the
same item cannot both succeed. workshop / transferred / damaged / returned
belong to other flows and are never written here.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import InventoryItem
from ..models.inventory import ITEM_AVAILABLE, ITEM_RESERVED, ITEM_SOLD
from aymur.time_utils import utcnow
from .concurrency import compare_and_swap
from .errors import ConcurrentModificationError, ItemUnavailableError, NotFoundError


ALLOWED_TRANSITIONS = {
    ITEM_AVAILABLE: {ITEM_RESERVED},
    ITEM_RESERVED: {ITEM_AVAILABLE, ITEM_SOLD},
}


def can_transition(*, from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def get_item(item_id: int, shop_id: int | None = None) -> InventoryItem:
    q = db.session.query(InventoryItem).filter(
        InventoryItem.id == item_id,
        InventoryItem.deleted_at.is_(None),
    )
    if shop_id is not None:
        q = q.filter(InventoryItem.shop_id == shop_id)
    item = q.populate_existing().first()
    if not item:
        raise NotFoundError("Inventory item not found", details={"item_id": item_id})
    return item


def reserve(item_id: int, expected_version: int, actor_id: int, *, commit: bool = True) -> int:
    """
    available -> reserved, only if the item is still at expected_version.

    Returns the new version.

    Raises:
        NotFoundError: item missing
        ItemUnavailableError: item is not available
        ConcurrentModificationError: another writer moved the version
    """
    try:
        return compare_and_swap(
            InventoryItem,
            item_id,
            expected_version,
            {"status": ITEM_RESERVED, "updated_at": utcnow(), "updated_by": actor_id},
            expected={"status": ITEM_AVAILABLE},
            commit=commit,
        )
    except ConcurrentModificationError:
        # Tell a lost race on the version apart from an item that is simply not for sale
        current = get_item(item_id)
        if current.status != ITEM_AVAILABLE:
            raise ItemUnavailableError(
                f"Item is not available for sale (current status: {current.status})",
                details={"item_id": item_id, "status": current.status},
            )
        raise


def release(item_id: int, actor_id: int, *, commit: bool = True) -> int:
    """
    reserved -> available. Raises when the item is not reserved.

    Raises:
        NotFoundError: item missing
        ItemUnavailableError: item is not reserved (e.g. already sold)
        ConcurrentModificationError: version moved between read and write
    """
    item = get_item(item_id)
    if item.status != ITEM_RESERVED:
        raise ItemUnavailableError(
            f"Item is not reserved (current status: {item.status})",
            details={"item_id": item_id, "status": item.status},
        )
    return compare_and_swap(
        InventoryItem,
        item_id,
        item.version,
        {"status": ITEM_AVAILABLE, "updated_at": utcnow(), "updated_by": actor_id},
        expected={"status": ITEM_RESERVED},
        commit=commit,
    )


def release_if_reserved(item_id: int, actor_id: int, *, commit: bool = True) -> bool:
    """
    reserved -> available when the item is still reserved; otherwise a no-op.

    Line removal uses this: an item another flow already took out of
    `reserved` (workshop, damaged, transferred) is left where it is.
    Returns True when the item was released.
    """
    item = (
        db.session.query(InventoryItem)
        .filter(InventoryItem.id == item_id)
        .populate_existing()
        .first()
    )
    if item is None or item.status != ITEM_RESERVED:
        current_app.logger.warning(
            "Skipped release of inventory item %s (status: %s)",
            item_id,
            item.status if item is not None else "missing",
        )
        return False
    compare_and_swap(
        InventoryItem,
        item_id,
        item.version,
        {"status": ITEM_AVAILABLE, "updated_at": utcnow(), "updated_by": actor_id},
        expected={"status": ITEM_RESERVED},
        commit=commit,
    )
    return True


def _batch_transition(item_ids: list[int], from_status: str, to_status: str, actor_id: int, *, commit: bool) -> None:
    if not can_transition(from_status=from_status, to_status=to_status):
        raise ValueError(f"Inventory transition {from_status} -> {to_status} is not allowed")
    if not item_ids:
        if commit:
            db.session.commit()
        return
    stmt = (
        update(InventoryItem)
        .where(InventoryItem.id.in_(item_ids), InventoryItem.status == from_status)
        .values(
            status=to_status,
            version=InventoryItem.version + 1,
            updated_at=utcnow(),
            updated_by=actor_id,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != len(set(item_ids)):
        db.session.rollback()
        raise ConcurrentModificationError(
            f"Expected {len(set(item_ids))} {from_status} items, {result.rowcount} matched",
            details={"item_ids": sorted(set(item_ids)), "from_status": from_status},
        )
    if commit:
        db.session.commit()


def finalize(item_ids: list[int], actor_id: int, *, commit: bool = True) -> None:
    """
    reserved -> sold for every item of a completing sale, as one statement.

    All-or-nothing: if any item is no longer reserved the statement is
    rolled back and ConcurrentModificationError is raised.
    """
    _batch_transition(item_ids, ITEM_RESERVED, ITEM_SOLD, actor_id, commit=commit)
    current_app.logger.info("Finalized %d inventory items as sold", len(item_ids))


def release_many(item_ids: list[int], actor_id: int, *, commit: bool = True) -> list[int]:
    """
    reserved -> available for every item of a voided sale that is still
    reserved, as one statement. Items already moved elsewhere are skipped.

    Returns the released ids.
    """
    wanted = set(item_ids)
    reserved: list[int] = []
    if wanted:
        rows = (
            db.session.query(InventoryItem.id)
            .filter(InventoryItem.id.in_(wanted), InventoryItem.status == ITEM_RESERVED)
            .all()
        )
        reserved = [row[0] for row in rows]
    skipped = sorted(wanted - set(reserved))
    if skipped:
        current_app.logger.warning("Skipped release of inventory items no longer reserved: %s", skipped)
    _batch_transition(reserved, ITEM_RESERVED, ITEM_AVAILABLE, actor_id, commit=commit)
    return sorted(reserved)
