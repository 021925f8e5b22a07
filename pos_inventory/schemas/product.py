from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CategoryRead(BaseModel):
    id: int
    organization_id: int
    name: str
    dynamic_pricing: bool

    model_config = ConfigDict(from_attributes=True)


class ProductCreateRequest(BaseModel):
    name: str
    category_id: int
    base_price: Decimal
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    description: Optional[str] = None


class ProductRead(BaseModel):
    id: int
    organization_id: int
    category_id: int
    name: str
    description: Optional[str] = None
    base_price: Decimal
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
