from decimal import Decimal
from typing import List

from pydantic import BaseModel

from app.schemas.order import OrderListResponse


class DashboardStats(BaseModel):
    total_revenue: Decimal
    total_orders: int
    pending_orders: int
    low_stock_variants: int
    recent_orders: List[OrderListResponse]
