from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)

from pos_inventory.database.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)

    name = Column(String(120), nullable=False)
    description = Column(String(1000))

    base_price = Column(Numeric(19, 4), nullable=False)
    min_price = Column(Numeric(19, 4))
    max_price = Column(Numeric(19, 4))

    # Soft delete flag; inactive products keep their inventory and history.
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("uq_products_org_name_ci", organization_id, func.lower(name), unique=True),
        Index("idx_products_org_category", "organization_id", "category_id"),
    )


__all__ = ["Product"]
