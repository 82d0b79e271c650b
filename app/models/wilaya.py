import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base
from app.db.enums import DeliveryType


class Wilaya(Base):
    """Delivery zone with its two delivery prices."""

    __tablename__ = "wilayas"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)

    delivery_price_home: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    delivery_price_desk: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def delivery_price(self, delivery_type: DeliveryType) -> Decimal:
        if delivery_type == DeliveryType.DESK:
            return self.delivery_price_desk
        return self.delivery_price_home
