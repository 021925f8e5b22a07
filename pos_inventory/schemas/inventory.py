from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AddStockRequest(BaseModel):
    product_id: int
    quantity: Decimal
    notes: Optional[str] = None


class RemoveStockRequest(BaseModel):
    product_id: int
    quantity: Decimal
    reference_id: Optional[str] = None
    notes: Optional[str] = None


class AdjustStockRequest(BaseModel):
    product_id: int
    new_quantity: Decimal
    notes: Optional[str] = None


class InventoryResponse(BaseModel):
    id: int
    organization_id: int
    product_id: int
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    description: Optional[str] = None
    base_price: Decimal
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    is_active: bool = True
    updated_at: Optional[datetime] = None


class InventoryTransactionResponse(BaseModel):
    id: int
    inventory_id: int
    transaction_type: str
    quantity_change: Decimal
    quantity_before: Decimal
    quantity_after: Decimal
    price_before: Decimal
    price_after: Decimal
    reference_id: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    station_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
