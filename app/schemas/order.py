from uuid import UUID
from decimal import Decimal
from datetime import datetime
from typing import List
from pydantic import BaseModel, ConfigDict, Field, computed_field
from app.db.enums import DeliveryType, OrderStatus


# --- Inbound ---

class CustomerIn(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=6, max_length=30, json_schema_extra={"example": "0550123456"})
    wilaya_id: UUID
    municipality_name: str = Field(..., min_length=1, max_length=100)
    address: str | None = None
    delivery_type: DeliveryType = DeliveryType.HOME


class ManualOrderLine(BaseModel):
    variant_id: UUID
    quantity: int = Field(..., gt=0)
    # Overrides the catalog price (phone deals, bundles)
    unit_price: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)


class ManualOrderCreate(BaseModel):
    customer: CustomerIn
    lines: List[ManualOrderLine]


class StatusUpdate(BaseModel):
    status: OrderStatus


# --- Outbound ---

class OrderItemRead(BaseModel):
    id: UUID
    product_id: UUID | None
    variant_id: UUID | None
    product_name: str
    price: Decimal
    quantity: int
    selected_size: str | None
    selected_color: str | None

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    id: UUID
    order_number: int
    customer_first_name: str
    customer_last_name: str
    customer_phone: str
    municipality_name: str
    delivery_type: DeliveryType
    total_price: Decimal
    status: OrderStatus
    created_at: datetime
    confirmed_at: datetime | None
    is_read: bool
    items: List[OrderItemRead] = []

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def summary(self) -> str:
        """One-line description of the lines, e.g. 'Dress (M) [Black] x2 + Scarf x1'."""
        parts = []
        for item in self.items:
            label = item.product_name
            if item.selected_size:
                label += f" ({item.selected_size})"
            if item.selected_color:
                label += f" [{item.selected_color}]"
            parts.append(f"{label} x{item.quantity}")
        return " + ".join(parts)


class OrderRead(OrderListResponse):
    wilaya_id: UUID | None
    address: str | None
    delivery_price: Decimal
    reconciliation_pending: bool


class UnreadOrders(BaseModel):
    count: int
    orders: List[OrderListResponse]


class RepairResult(BaseModel):
    repaired: int
