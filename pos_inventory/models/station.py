from sqlalchemy import Boolean, Column, ForeignKey, Integer, String

from pos_inventory.database.base import Base


class Station(Base):
    __tablename__ = "stations"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)

    name = Column(String(120), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)


__all__ = ["Station"]
