"""Item management and read-aggregation service.

Every query is filtered on the owner. Reading or updating someone else's
item looks exactly like reading a missing one, and deleting it is a no-op.
"""

import csv
import io
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tally.capture.heuristics import GENERAL_CATEGORY
from tally.core.exceptions import NotFoundError, ValidationError
from tally.models.category import Category
from tally.models.item import Item
from tally.models.user import User
from tally.schemas.category import CategoryBreakdown
from tally.schemas.item import CENTS, ItemCreate, ItemStats, ItemUpdate

logger = structlog.get_logger()

CSV_COLUMNS = [
    "id",
    "name",
    "category",
    "description",
    "location",
    "purchase_price",
    "current_value",
    "purchase_date",
    "expiry_date",
    "warranty_expiry",
    "barcode",
    "created_at",
]


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS)


class ItemService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── CRUD ──────────────────────────────────────────

    async def list_items(self, user: User, q: str | None = None) -> list[Item]:
        """All items of the user, newest first, optionally filtered by free text."""
        query = select(Item).where(Item.user_id == user.id)
        if q and q.strip():
            pattern = f"%{q.strip()}%"
            query = query.where(
                or_(
                    Item.name.ilike(pattern),
                    Item.description.ilike(pattern),
                    Item.location.ilike(pattern),
                )
            )
        result = await self.db.execute(query.order_by(Item.created_at.desc(), Item.id.desc()))
        return list(result.scalars().all())

    async def get_item(self, item_id: int, user: User) -> Item:
        result = await self.db.execute(
            select(Item).where(Item.id == item_id, Item.user_id == user.id)
        )
        item = result.scalar_one_or_none()
        if not item:
            raise NotFoundError("Item")
        return item

    async def create_item(self, data: ItemCreate, user: User, photo_url: str | None = None) -> Item:
        await self._check_category(data.category_id, user)
        item = Item(
            user_id=user.id,
            photo_url=photo_url,
            **data.model_dump(),
        )
        self.db.add(item)
        await self.db.flush()
        await self.db.refresh(item)
        logger.info("Item created", user_id=user.id, item_id=item.id)
        return item

    async def update_item(
        self, item_id: int, data: ItemUpdate, user: User, photo_url: str | None = None
    ) -> Item:
        """Partial update: fields absent from ``data`` are left untouched."""
        item = await self.get_item(item_id, user)
        update_data = data.model_dump(exclude_unset=True)
        if "category_id" in update_data:
            await self._check_category(update_data["category_id"], user)
        for key, value in update_data.items():
            setattr(item, key, value)
        if photo_url is not None:
            item.photo_url = photo_url
        await self.db.flush()
        await self.db.refresh(item)
        return item

    async def delete_item(self, item_id: int, user: User) -> bool:
        result = await self.db.execute(
            delete(Item).where(Item.id == item_id, Item.user_id == user.id)
        )
        return result.rowcount > 0

    async def category_name(self, item: Item) -> str:
        if item.category_id is None:
            return GENERAL_CATEGORY
        result = await self.db.execute(
            select(Category.name).where(
                Category.id == item.category_id, Category.user_id == item.user_id
            )
        )
        return result.scalar_one_or_none() or GENERAL_CATEGORY

    async def _check_category(self, category_id: int | None, user: User) -> None:
        if category_id is None:
            return
        result = await self.db.execute(
            select(Category.id).where(Category.id == category_id, Category.user_id == user.id)
        )
        if result.scalar_one_or_none() is None:
            raise ValidationError("Unknown category")

    # ── Read views ────────────────────────────────────

    async def recent_items(self, user: User, limit: int = 10) -> list[Item]:
        result = await self.db.execute(
            select(Item)
            .where(Item.user_id == user.id)
            .order_by(Item.created_at.desc(), Item.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_stats(self, user: User) -> ItemStats:
        result = await self.db.execute(
            select(func.count(Item.id), func.sum(Item.current_value)).where(Item.user_id == user.id)
        )
        total_items, total_value = result.one()
        return ItemStats(
            total_items=total_items or 0,
            total_value="0" if total_value is None else str(_money(total_value)),
        )

    async def expiring_items(
        self, user: User, days: int = 7, now: datetime | None = None
    ) -> list[Item]:
        """Items whose expiry date is in [now, now + days], soonest first."""
        now = now or datetime.now(timezone.utc)
        horizon = now + timedelta(days=days)
        result = await self.db.execute(
            select(Item)
            .where(
                Item.user_id == user.id,
                Item.expiry_date.is_not(None),
                Item.expiry_date >= now,
                Item.expiry_date <= horizon,
            )
            .order_by(Item.expiry_date.asc())
        )
        return list(result.scalars().all())

    async def by_category(self, user: User) -> list[CategoryBreakdown]:
        """Item count and value per category, uncategorized items included."""
        result = await self.db.execute(
            select(
                Item.category_id,
                Category.name,
                func.count(Item.id).label("count"),
                func.sum(Item.current_value).label("total"),
            )
            .select_from(Item)
            .outerjoin(Category, Category.id == Item.category_id)
            .where(Item.user_id == user.id)
            .group_by(Item.category_id, Category.name)
        )
        entries = [
            CategoryBreakdown(
                category_id=row.category_id,
                category_name=row.name or "Uncategorized",
                count=row.count,
                total_value=_money(row.total),
            )
            for row in result.all()
        ]
        entries.sort(key=lambda e: (e.total_value, e.count), reverse=True)
        return entries

    async def export_csv(self, user: User) -> str:
        items = await self.list_items(user)
        categories = {
            c.id: c.name
            for c in (
                await self.db.execute(select(Category).where(Category.user_id == user.id))
            ).scalars()
        }

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)
        for item in items:
            writer.writerow([
                item.id,
                item.name,
                categories.get(item.category_id, ""),
                item.description or "",
                item.location or "",
                item.purchase_price if item.purchase_price is not None else "",
                item.current_value if item.current_value is not None else "",
                item.purchase_date.date().isoformat() if item.purchase_date else "",
                item.expiry_date.date().isoformat() if item.expiry_date else "",
                item.warranty_expiry.date().isoformat() if item.warranty_expiry else "",
                item.barcode or "",
                item.created_at.isoformat() if item.created_at else "",
            ])
        return buffer.getvalue()
