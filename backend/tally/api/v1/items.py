"""Item API routes.

Create and update take multipart form fields (camelCase names, as the client
sends them) plus an optional ``photo`` file.
"""

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from tally.api.deps import get_current_user, get_item_service
from tally.config import settings
from tally.models.user import User
from tally.schemas.category import CategoryBreakdown
from tally.schemas.item import ItemCreate, ItemResponse, ItemStats, ItemUpdate
from tally.services.item_service import ItemService
from tally.services.qr_codes import QRCodeGenerator
from tally.services.uploads import discard_photo, store_photo

router = APIRouter()


def item_form_fields(
    name: str | None = Form(None),
    description: str | None = Form(None),
    category_id: str | None = Form(None, alias="categoryId"),
    location: str | None = Form(None),
    purchase_price: str | None = Form(None, alias="purchasePrice"),
    current_value: str | None = Form(None, alias="currentValue"),
    purchase_date: str | None = Form(None, alias="purchaseDate"),
    expiry_date: str | None = Form(None, alias="expiryDate"),
    warranty_expiry: str | None = Form(None, alias="warrantyExpiry"),
    barcode: str | None = Form(None),
    qr_code: str | None = Form(None, alias="qrCode"),
    receipt_url: str | None = Form(None, alias="receiptUrl"),
) -> dict[str, str]:
    """Collect the submitted fields; blank values count as not submitted."""
    fields = {
        "name": name,
        "description": description,
        "category_id": category_id,
        "location": location,
        "purchase_price": purchase_price,
        "current_value": current_value,
        "purchase_date": purchase_date,
        "expiry_date": expiry_date,
        "warranty_expiry": warranty_expiry,
        "barcode": barcode,
        "qr_code": qr_code,
        "receipt_url": receipt_url,
    }
    return {key: value for key, value in fields.items() if value is not None and value.strip()}


def _parse(schema, fields: dict[str, str]):
    try:
        return schema.model_validate(fields)
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False)) from e


async def _photo_url(photo: UploadFile | None) -> str | None:
    if photo is None or not photo.filename:
        return None
    return await store_photo(photo)


# ── Collection ────────────────────────────────────


@router.get("", response_model=list[ItemResponse])
async def list_items(
    q: str | None = Query(None, description="Search name, description and location"),
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    return await service.list_items(current_user, q)


@router.post("", response_model=ItemResponse, status_code=201)
async def create_item(
    fields: dict[str, str] = Depends(item_form_fields),
    photo: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    data = _parse(ItemCreate, fields)
    photo_url = await _photo_url(photo)
    try:
        return await service.create_item(data, current_user, photo_url=photo_url)
    except Exception:
        discard_photo(photo_url)
        raise


# ── Dashboard views ───────────────────────────────


@router.get("/recent", response_model=list[ItemResponse])
async def recent_items(
    limit: int = Query(settings.recent_items_default_limit, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    return await service.recent_items(current_user, limit)


@router.get("/stats", response_model=ItemStats)
async def item_stats(
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    return await service.get_stats(current_user)


@router.get("/stats/by-category", response_model=list[CategoryBreakdown])
async def stats_by_category(
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    return await service.by_category(current_user)


@router.get("/expiring", response_model=list[ItemResponse])
async def expiring_items(
    days: int = Query(settings.expiring_days_default, ge=0, le=3650),
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    return await service.expiring_items(current_user, days)


@router.get("/export.csv")
async def export_items(
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    content = await service.export_csv(current_user)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="tally-items.csv"'},
    )


# ── Single item ───────────────────────────────────


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    return await service.get_item(item_id, current_user)


@router.api_route("/{item_id}", methods=["PUT", "PATCH"], response_model=ItemResponse)
async def update_item(
    item_id: int,
    fields: dict[str, str] = Depends(item_form_fields),
    photo: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    """Partial update: only submitted fields change, a new photo replaces the old one."""
    data = _parse(ItemUpdate, fields)
    photo_url = await _photo_url(photo)
    try:
        return await service.update_item(item_id, data, current_user, photo_url=photo_url)
    except Exception:
        discard_photo(photo_url)
        raise


@router.delete("/{item_id}", status_code=204)
async def delete_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    await service.delete_item(item_id, current_user)


@router.get("/{item_id}/qr")
async def item_qr_code(
    item_id: int,
    current_user: User = Depends(get_current_user),
    service: ItemService = Depends(get_item_service),
):
    """PNG QR label encoding the item's data."""
    item = await service.get_item(item_id, current_user)
    category = await service.category_name(item)
    qr = QRCodeGenerator().generate(item.name, category, item.description, item.current_value)
    return Response(
        content=qr.png,
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="{qr.filename}"'},
    )
