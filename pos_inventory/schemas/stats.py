from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class UserSalesStats(BaseModel):
    user_id: Optional[str] = None
    sales_count: int
    total_revenue: Decimal


class StationSalesStats(BaseModel):
    station_id: Optional[int] = None
    station_name: Optional[str] = None
    sales_count: int
    total_revenue: Decimal
