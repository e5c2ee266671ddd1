"""Item schemas for request/response validation.

Create/update payloads arrive as multipart form fields, so every value starts
life as a string: blank strings mean "not given", money is quantized to cents
and dates accept either ``YYYY-MM-DD`` or a full ISO timestamp.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from pydantic import Field, field_validator

from tally.schemas.base import CamelModel

CENTS = Decimal("0.01")
# NUMERIC(10, 2)
MAX_AMOUNT = Decimal("99999999.99")


def _to_money(v: Decimal | None) -> Decimal | None:
    if v is None:
        return None
    if v < 0:
        raise ValueError("Amount must not be negative")
    if v > MAX_AMOUNT:
        raise ValueError(f"Amount must not exceed {MAX_AMOUNT}")
    return v.quantize(CENTS, rounding=ROUND_HALF_UP)


def _to_timestamp(v):
    if v is None or isinstance(v, datetime):
        return v
    if isinstance(v, date):
        return datetime(v.year, v.month, v.day, tzinfo=timezone.utc)
    if isinstance(v, str) and len(v) == 10:
        d = date.fromisoformat(v)
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    return v


class _ItemFields(CamelModel):
    description: str | None = None
    category_id: int | None = None
    location: str | None = Field(default=None, max_length=255)
    purchase_price: Decimal | None = None
    current_value: Decimal | None = None
    purchase_date: datetime | None = None
    expiry_date: datetime | None = None
    warranty_expiry: datetime | None = None
    barcode: str | None = Field(default=None, max_length=50)
    qr_code: str | None = Field(default=None, max_length=255)
    receipt_url: str | None = Field(default=None, max_length=500)

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("purchase_price", "current_value")
    @classmethod
    def validate_money(cls, v: Decimal | None) -> Decimal | None:
        return _to_money(v)

    @field_validator("purchase_date", "expiry_date", "warranty_expiry", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return _to_timestamp(v)

    @field_validator("purchase_date", "expiry_date", "warranty_expiry")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ItemCreate(_ItemFields):
    name: str = Field(min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class ItemUpdate(_ItemFields):
    """Partial update: only fields explicitly set are applied."""

    name: str | None = Field(default=None, min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str | None) -> str | None:
        if v is None:
            raise ValueError("Name is required")
        return v.strip()


class ItemResponse(CamelModel):
    id: int
    user_id: str
    category_id: int | None
    name: str
    description: str | None
    location: str | None
    purchase_price: Decimal | None
    current_value: Decimal | None
    purchase_date: datetime | None
    expiry_date: datetime | None
    warranty_expiry: datetime | None
    barcode: str | None
    qr_code: str | None
    photo_url: str | None
    receipt_url: str | None
    created_at: datetime
    updated_at: datetime


class ItemStats(CamelModel):
    total_items: int
    total_value: str
