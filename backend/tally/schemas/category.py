"""Category schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from tally.schemas.base import CamelModel


class CategoryCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    icon: str = Field(default="box", max_length=50)
    color: str = Field(default="#6b7280", max_length=20)


class CategoryUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    icon: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, max_length=20)


class CategoryResponse(CamelModel):
    id: int
    name: str
    icon: str
    color: str
    user_id: str
    created_at: datetime


class CategoryBreakdown(CamelModel):
    category_id: int | None
    category_name: str
    count: int
    total_value: Decimal
