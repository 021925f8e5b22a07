from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, Numeric, String

from pos_inventory.database.base import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)

    # Null steps fall back to the DEFAULT_PRICE_*_STEP settings.
    price_increase_step = Column(Numeric(19, 4))
    price_decrease_step = Column(Numeric(19, 4))

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


__all__ = ["Organization"]
