"""Item entry form: defaults, prefill from capture, validation, submission."""

from collections.abc import Sequence
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Protocol, Union

import httpx
import structlog
from pydantic import ValidationError
from pydantic.alias_generators import to_camel, to_snake

from tally.client import (
    APIError,
    DashboardViews,
    LoginRequiredError,
    PhotoAttachment,
    TallyClient,
)
from tally.schemas.capture import PrefillData
from tally.schemas.item import ItemCreate, ItemResponse

logger = structlog.get_logger()


class CategoryOption(Protocol):
    id: int
    name: str


@dataclass(frozen=True)
class Submitted:
    item: ItemResponse


@dataclass(frozen=True)
class Invalid:
    errors: dict[str, str]


@dataclass(frozen=True)
class LoginRequired:
    login_url: str


@dataclass(frozen=True)
class SubmitFailed:
    message: str
    retryable: bool = True


SubmitOutcome = Union[Submitted, Invalid, LoginRequired, SubmitFailed]


@dataclass
class ItemEntryForm:
    # Raw input values, as typed; every field starts empty
    name: str = ""
    description: str = ""
    category_id: str = ""
    location: str = ""
    purchase_price: str = ""
    current_value: str = ""
    purchase_date: str = ""
    expiry_date: str = ""
    warranty_expiry: str = ""
    barcode: str = ""
    qr_code: str = ""
    photo: PhotoAttachment | None = field(default=None, repr=False)
    errors: dict[str, str] = field(default_factory=dict)

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls) if f.name not in ("photo", "errors")]

    def apply_prefill(self, prefill: PrefillData, categories: Sequence[CategoryOption] = ()) -> None:
        """Overwrite the fields the capture produced; leave the rest untouched."""
        if prefill.name:
            self.name = prefill.name
        if prefill.description:
            self.description = prefill.description
        if prefill.value is not None:
            self.current_value = f"{Decimal(prefill.value):.2f}"
        if prefill.barcode:
            self.barcode = prefill.barcode
        if prefill.category:
            match = resolve_category(prefill.category, categories)
            if match is not None:
                self.category_id = str(match.id)

    def validate(self) -> bool:
        self.errors = {}
        try:
            ItemCreate.model_validate({name: getattr(self, name) for name in self.field_names()})
        except ValidationError as e:
            for error in e.errors():
                key = to_snake(str(error["loc"][0])) if error["loc"] else "form"
                if key == "name":
                    self.errors[key] = "Name is required"
                else:
                    self.errors.setdefault(key, error["msg"])
        return not self.errors

    def to_form_data(self) -> dict[str, str]:
        """Multipart fields: only non-empty values, camelCase keys."""
        return {
            to_camel(name): value.strip()
            for name in self.field_names()
            if (value := getattr(self, name)).strip()
        }

    async def submit(
        self,
        client: TallyClient,
        views: DashboardViews | None = None,
        item_id: int | None = None,
    ) -> SubmitOutcome:
        if not self.validate():
            return Invalid(dict(self.errors))

        data = self.to_form_data()
        try:
            if item_id is None:
                item = await client.create_item(data, self.photo)
            else:
                item = await client.update_item(item_id, data, self.photo)
        except LoginRequiredError as e:
            logger.info("Item submit needs login", login_url=e.login_url)
            return LoginRequired(e.login_url)
        except APIError as e:
            if e.status_code == 422:
                self.errors = {"form": str(e.detail)}
                return Invalid(dict(self.errors))
            logger.warning("Item submit failed", status=e.status_code, detail=e.detail)
            return SubmitFailed("Failed to save item. Please try again.")
        except httpx.HTTPError as e:
            logger.warning("Item submit failed", error=str(e))
            return SubmitFailed("Failed to save item. Please try again.")

        if views is not None:
            views.invalidate(views.ITEMS, views.RECENT, views.STATS, views.EXPIRING)
        return Submitted(item)


def resolve_category(name: str, categories: Sequence[CategoryOption]) -> CategoryOption | None:
    wanted = name.strip().lower()
    for category in categories:
        if category.name.strip().lower() == wanted:
            return category
    return None
