from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, event

from pos_inventory.core.exceptions import ImmutableTransactionError
from pos_inventory.database.base import Base

TRANSACTION_SALE = "SALE"
TRANSACTION_ADD = "ADD"
TRANSACTION_REMOVE = "REMOVE"
TRANSACTION_ADJUSTMENT = "ADJUSTMENT"

TRANSACTION_TYPES = (
    TRANSACTION_SALE,
    TRANSACTION_ADD,
    TRANSACTION_REMOVE,
    TRANSACTION_ADJUSTMENT,
)


class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True)
    inventory_id = Column(Integer, ForeignKey("inventory.id"), nullable=False)

    transaction_type = Column(String(20), nullable=False)

    quantity_change = Column(Numeric(19, 4), nullable=False)
    quantity_before = Column(Numeric(19, 4), nullable=False)
    quantity_after = Column(Numeric(19, 4), nullable=False)
    price_before = Column(Numeric(19, 4), nullable=False)
    price_after = Column(Numeric(19, 4), nullable=False)

    reference_id = Column(String(120))
    notes = Column(String(1000))
    # Null for system-initiated entries such as price corrections.
    created_by = Column(String(64))
    station_id = Column(Integer, ForeignKey("stations.id"))

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ({})".format(", ".join("'{}'".format(t) for t in TRANSACTION_TYPES)),
            name="ck_inv_tx_type",
        ),
        Index("idx_inv_tx_inventory_created", "inventory_id", "created_at"),
        Index("idx_inv_tx_type_created", "transaction_type", "created_at"),
        Index("idx_inv_tx_reference", "reference_id"),
    )


@event.listens_for(InventoryTransaction, "before_update")
def _block_transaction_update(_mapper, _connection, target):
    raise ImmutableTransactionError(target.id, "updated")


@event.listens_for(InventoryTransaction, "before_delete")
def _block_transaction_delete(_mapper, _connection, target):
    raise ImmutableTransactionError(target.id, "deleted")


__all__ = [
    "InventoryTransaction",
    "TRANSACTION_ADD",
    "TRANSACTION_ADJUSTMENT",
    "TRANSACTION_REMOVE",
    "TRANSACTION_SALE",
    "TRANSACTION_TYPES",
]
