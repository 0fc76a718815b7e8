# Overview: Error taxonomy and discriminated result type shared by every sale-engine operation.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar


class SaleCoreError(Exception):
    """Base for all sale-engine failures; `code` is stable and machine-readable."""
    code = "unexpected_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(SaleCoreError):
    """Malformed input, raised before any store access."""
    code = "validation_error"


class NotFoundError(SaleCoreError):
    code = "not_found"


class InvalidStatusError(SaleCoreError):
    """Operation not legal for the entity's current lifecycle state."""
    code = "invalid_status"


class ItemUnavailableError(SaleCoreError):
    code = "item_unavailable"


class DuplicateItemError(SaleCoreError):
    code = "duplicate_item"


class CustomerMismatchError(SaleCoreError):
    code = "customer_mismatch"


class NoItemsError(SaleCoreError):
    code = "no_items"


class ConcurrentModificationError(SaleCoreError):
    """An optimistic version check failed; the caller decides whether to retry."""
    code = "concurrent_modification"


class DatabaseError(SaleCoreError):
    code = "database_error"


class UnexpectedError(SaleCoreError):
    code = "unexpected_error"


T = TypeVar("T")


@dataclass
class ActionResult(Generic[T]):
    """
    Discriminated operation result.

    ok=True  -> data holds the payload
    ok=False -> error holds a human-readable message and code a stable error code
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, data: T | None = None) -> "ActionResult[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, exc: SaleCoreError) -> "ActionResult[T]":
        return cls(ok=False, error=exc.message, code=exc.code, details=exc.details)
