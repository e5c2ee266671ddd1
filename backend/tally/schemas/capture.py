"""Capture schemas: normalized adapter results and the capture API payloads."""

from decimal import Decimal
from typing import Any

from pydantic import Field

from tally.schemas.base import CamelModel


class PrefillData(CamelModel):
    """Normalized adapter output handed to the item entry form."""

    name: str | None = None
    category: str | None = None
    description: str | None = None
    value: Decimal | None = None
    barcode: str | None = None


class Detection(CamelModel):
    label: str
    confidence: float = Field(ge=0, le=1)
    suggested_category: str

    def to_prefill(self) -> PrefillData:
        return PrefillData(name=self.label.title(), category=self.suggested_category)


class PhotoAnalysis(CamelModel):
    detections: list[Detection]
    # True when the classifier was unavailable and the demo labels were used
    fallback: bool = False


class ProductData(CamelModel):
    barcode: str
    name: str
    brand: str | None = None
    description: str | None = None
    category: str | None = None
    price: str | None = None
    image_url: str | None = None
    placeholder: bool = False

    def to_prefill(self) -> PrefillData:
        value = None
        if self.price:
            try:
                value = Decimal(self.price)
            except ArithmeticError:
                value = None
        return PrefillData(
            name=self.name,
            category=self.category,
            description=self.description,
            value=value,
            barcode=self.barcode,
        )


class QRItemData(CamelModel):
    id: str | None = None
    name: str
    category: str
    description: str | None = None
    value: Decimal | None = None
    date_added: str | None = None
    location: str | None = None
    barcode: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def is_structured(self) -> bool:
        return not (self.metadata and "originalQRText" in self.metadata)

    def to_prefill(self) -> PrefillData:
        return PrefillData(
            name=self.name,
            category=self.category,
            description=self.description,
            value=self.value,
            barcode=self.barcode,
        )


class QRParseRequest(CamelModel):
    text: str


class QRGenerateRequest(CamelModel):
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    description: str | None = None
    value: Decimal | None = None


class QRGenerateResponse(CamelModel):
    payload: str
    data_url: str
    filename: str


class VoiceRequest(CamelModel):
    transcript: str = Field(min_length=1)


class VoiceResult(CamelModel):
    transcript: str
    confidence: float
    suggested_name: str | None = None
    suggested_category: str | None = None
    suggested_description: str | None = None

    def to_prefill(self) -> PrefillData:
        return PrefillData(
            name=self.suggested_name,
            category=self.suggested_category,
            description=self.suggested_description,
        )
