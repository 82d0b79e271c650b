from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, json_schema_extra={"example": "Dresses"})
    image_url: str | None = Field(None, max_length=500)
    display_order: int = Field(0, ge=0)


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    # All fields optional for PATCH requests
    name: str | None = Field(None, min_length=1, max_length=100)
    image_url: str | None = Field(None, max_length=500)
    display_order: int | None = Field(None, ge=0)


class CategoryRead(CategoryBase):
    id: UUID
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
