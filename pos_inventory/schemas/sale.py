from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class SaleItemRequest(BaseModel):
    product_id: int
    quantity: Decimal


class SaleRequest(BaseModel):
    items: List[SaleItemRequest] = Field(default_factory=list)
    notes: Optional[str] = None
    station_id: Optional[int] = None


class SaleItemResponse(BaseModel):
    product_id: int
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal


class SaleResponse(BaseModel):
    sale_id: str
    items: List[SaleItemResponse]
    total_amount: Decimal
    notes: Optional[str] = None
    station_id: Optional[int] = None
    timestamp: datetime
