from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    icon: Optional[str] = Field(None, max_length=50)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    icon: Optional[str] = Field(None, max_length=50)


class ItemFields(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    icon: Optional[str] = Field(None, max_length=50)
    category_id: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None


class AvailabilityUpdate(BaseModel):
    is_available: bool


class ReorderEntry(BaseModel):
    id: int
    order_index: int = Field(..., ge=0)
