"""
Typed errors raised by the inventory ledger.

Every error has a machine-readable ``code`` and carries the identifiers the
caller needs (product id, sale line index, ...) as attributes, so the
transport layer can map them to tenant-visible responses without parsing
messages.

    InventoryError
    +-- NotFoundError
    +-- ForbiddenError
    +-- InvalidArgumentError
    +-- InsufficientStockError
    +-- ConflictError
    +-- ImmutableTransactionError
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional


class InventoryError(Exception):
    code: str = "INVENTORY_ERROR"

    def __init__(
        self,
        message: str,
        *,
        product_id: Optional[int] = None,
        line_index: Optional[int] = None,
    ):
        self.message = message
        self.product_id = product_id
        self.line_index = line_index
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.product_id is not None:
            payload["product_id"] = self.product_id
        if self.line_index is not None:
            payload["line_index"] = self.line_index
        return payload


class NotFoundError(InventoryError):
    code = "NOT_FOUND"


class ForbiddenError(InventoryError):
    code = "FORBIDDEN"


class InvalidArgumentError(InventoryError):
    code = "INVALID_ARGUMENT"


class ConflictError(InventoryError):
    code = "CONFLICT"


class InsufficientStockError(InventoryError):
    code = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: int,
        requested: Decimal,
        available: Decimal,
        *,
        line_index: Optional[int] = None,
    ):
        self.requested = requested
        self.available = available
        super().__init__(
            "Insufficient stock for product {}: requested {}, available {}".format(
                product_id, requested, available
            ),
            product_id=product_id,
            line_index=line_index,
        )

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["requested"] = str(self.requested)
        payload["available"] = str(self.available)
        return payload


class ImmutableTransactionError(InventoryError):
    code = "IMMUTABLE_TRANSACTION"

    def __init__(self, transaction_id: Optional[int], action: str):
        self.transaction_id = transaction_id
        self.action = action
        super().__init__(
            "Inventory transaction {} is immutable and cannot be {}".format(
                transaction_id, action
            )
        )


__all__ = [
    "ConflictError",
    "ForbiddenError",
    "ImmutableTransactionError",
    "InsufficientStockError",
    "InvalidArgumentError",
    "InventoryError",
    "NotFoundError",
]
