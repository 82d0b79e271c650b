import uuid

from sqlalchemy import Numeric, ForeignKey, DateTime, Integer, String, Boolean, func
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID
from decimal import Decimal
from datetime import datetime
from app.db.base import Base
from app.db.enums import DeliveryType, OrderStatus, delivery_type_type, order_status_type



class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    order_number: Mapped[int] = mapped_column(
        Integer,
        unique=True,
        index=True,
        nullable=False,
    )

    # Customer
    customer_first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    # Delivery
    wilaya_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("wilayas.id", ondelete="SET NULL"),
        nullable=True,
    )
    municipality_name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)

    delivery_type: Mapped[DeliveryType] = mapped_column(
        delivery_type_type,
        nullable=False,
    )

    delivery_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    # Sum of the line items, delivery excluded
    total_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )

    status: Mapped[OrderStatus] = mapped_column(
        order_status_type,
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    is_read: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
    )

    # Set while a status change is in flight: the stock delta towards this
    # status may not have been committed yet.
    reconciliation_target: Mapped[OrderStatus | None] = mapped_column(
        order_status_type,
        nullable=True,
    )

    reconciliation_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )


    # Relationships
    wilaya = relationship("Wilaya")

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def customer_name(self) -> str:
        return f"{self.customer_first_name} {self.customer_last_name}".strip()

    @property
    def reconciliation_pending(self) -> bool:
        return self.reconciliation_target is not None
