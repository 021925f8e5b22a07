from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, func

from pos_inventory.database.base import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)

    name = Column(String(120), nullable=False)
    dynamic_pricing = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("uq_categories_org_name_ci", organization_id, func.lower(name), unique=True),
    )


__all__ = ["Category"]
