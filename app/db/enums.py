import sqlalchemy as sa
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DeliveryType(str, Enum):
    HOME = "home"
    DESK = "desk"


# Shared column types so both status columns bind one database enum
order_status_type = sa.Enum(
    OrderStatus,
    name="order_status_enum",
    values_callable=lambda enum: [e.value for e in enum],
)

delivery_type_type = sa.Enum(
    DeliveryType,
    name="delivery_type_enum",
    values_callable=lambda enum: [e.value for e in enum],
)
