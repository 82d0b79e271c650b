from pydantic import BaseModel, Field, field_validator, ConfigDict
from decimal import Decimal
from datetime import datetime
from typing import List
from uuid import UUID



# Variant Based
class VariantBase(BaseModel):
    size: str = Field(..., min_length=1, max_length=50, json_schema_extra={"example": "M"})
    color_name: str = Field(..., min_length=1, max_length=100, json_schema_extra={"example": "Black"})
    color_hex: str = Field("#000000", pattern=r"^#[0-9A-Fa-f]{6}$")
    quantity: int = Field(0, ge=0, json_schema_extra={"example": 10})


class VariantCreate(VariantBase):
    pass

class VariantRead(VariantBase):
    """Schema for returning variant data to the dashboard"""
    id: UUID
    product_id: UUID

    model_config = ConfigDict(from_attributes=True)


class StockAdjust(BaseModel):
    """Manual stock correction. Positive restores, negative consumes."""
    delta: int

    @field_validator("delta")
    @classmethod
    def must_not_be_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("Delta must not be zero")
        return v

class StockRead(BaseModel):
    variant_id: UUID
    quantity: int



# Admin Schema for Products

class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, json_schema_extra={"example": "Linen Dress"})
    description: str | None = None
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    discount_price: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    is_active: bool = True
    category_id: UUID | None = None

class ProductCreate(ProductBase):
    variants: List[VariantCreate] = []

class ProductRead(ProductBase):
    id: UUID
    created_at: datetime | None = None
    variants: List[VariantRead]

    model_config = ConfigDict(from_attributes=True)


class VariantUpsert(VariantBase):
    """A variant in an edit form: with an id it updates, without one it is new."""
    id: UUID | None = None


class ProductUpdate(BaseModel):
    """
    PATCH body. Only sent fields change.

    When `variants` is sent it is the full new list: variants missing from
    it are removed from the product.
    """
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    price: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    discount_price: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    category_id: UUID | None = None
    is_active: bool | None = None
    variants: List[VariantUpsert] | None = None
