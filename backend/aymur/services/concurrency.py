# Overview: Service-layer concurrency primitives: versioned compare-and-swap and retry.

from __future__ import annotations

import time
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from ..extensions import db
from .errors import ConcurrentModificationError


def compare_and_swap(
    model,
    row_id: int,
    expected_version: int,
    patch: dict[str, Any],
    *,
    expected: dict[str, Any] | None = None,
    commit: bool = True,
) -> int:
    """
    Versioned update primitive shared by items, sales and customers.

    Issues a single conditional statement:

        UPDATE <table> SET <patch>, version = version + 1
        WHERE id = :row_id AND version = :expected_version [AND <expected>]

    Exactly one of several concurrent writers targeting the same version can
    affect the row. Returns the new version; raises
    ConcurrentModificationError when no row matched.
    """
    conditions = [model.id == row_id, model.version == expected_version]
    for column, value in (expected or {}).items():
        conditions.append(getattr(model, column) == value)

    stmt = (
        update(model)
        .where(*conditions)
        .values(**patch, version=model.version + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        db.session.rollback()
        raise ConcurrentModificationError(
            f"{model.__tablename__} {row_id} was modified concurrently",
            details={"table": model.__tablename__, "id": row_id, "expected_version": expected_version},
        )
    if commit:
        db.session.commit()
    return expected_version + 1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05, retry_on=(OperationalError,)):
    """
    Execute a DB operation with retry on transient store failures.

    Retries on OperationalError (locked database, deadlocks) and whatever
    extra exception types the caller names. Never used for version
    conflicts: ConcurrentModificationError always reaches the caller.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
