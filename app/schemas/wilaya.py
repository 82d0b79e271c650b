from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class WilayaBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, json_schema_extra={"example": "Alger"})
    delivery_price_home: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    delivery_price_desk: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    is_active: bool = True


class WilayaCreate(WilayaBase):
    pass


class WilayaUpdate(BaseModel):
    # All fields optional for PATCH requests
    delivery_price_home: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    delivery_price_desk: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    is_active: bool | None = None


class WilayaRead(WilayaBase):
    id: UUID

    model_config = ConfigDict(from_attributes=True)
