"""Category management service."""

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tally.core.exceptions import NotFoundError
from tally.models.category import Category
from tally.models.item import Item
from tally.models.user import User
from tally.schemas.category import CategoryCreate, CategoryUpdate

logger = structlog.get_logger()

# (name, icon, color), seeded in this order
DEFAULT_CATEGORIES: list[tuple[str, str, str]] = [
    ("Kitchen & Dining", "utensils", "#f97316"),
    ("Electronics", "laptop", "#3b82f6"),
    ("Personal Care", "heart", "#ec4899"),
    ("Household Items", "home", "#10b981"),
    ("Perishables", "apple", "#ef4444"),
    ("Furniture", "armchair", "#8b5cf6"),
    ("Clothing & Accessories", "shirt", "#f59e0b"),
    ("Tools & Hardware", "wrench", "#6b7280"),
    ("Books & Media", "book", "#06b6d4"),
    ("Sports & Recreation", "dumbbell", "#84cc16"),
    ("Automotive", "car", "#dc2626"),
    ("Health & Medical", "pill", "#059669"),
    ("Office Supplies", "briefcase", "#4f46e5"),
    ("Garden & Outdoor", "flower", "#65a30d"),
    ("Collectibles", "gem", "#9333ea"),
]


class CategoryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_categories(self, user: User) -> list[Category]:
        result = await self.db.execute(
            select(Category).where(Category.user_id == user.id).order_by(Category.id)
        )
        return list(result.scalars().all())

    async def ensure_default_categories(self, user: User) -> list[Category]:
        """Seed the default set when the user has no categories at all.

        Only emptiness is checked: a user who deletes every category gets the
        defaults back on the next listing.
        """
        categories = await self.list_categories(user)
        if categories:
            return categories

        for name, icon, color in DEFAULT_CATEGORIES:
            self.db.add(Category(user_id=user.id, name=name, icon=icon, color=color))
        await self.db.flush()
        logger.info("Seeded default categories", user_id=user.id, count=len(DEFAULT_CATEGORIES))
        return await self.list_categories(user)

    async def create_category(self, data: CategoryCreate, user: User) -> Category:
        category = Category(
            user_id=user.id,
            name=data.name,
            icon=data.icon,
            color=data.color,
        )
        self.db.add(category)
        await self.db.flush()
        await self.db.refresh(category)
        return category

    async def update_category(self, category_id: int, data: CategoryUpdate, user: User) -> Category:
        category = await self._get_user_category(category_id, user)
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        for key, value in update_data.items():
            setattr(category, key, value)
        await self.db.flush()
        await self.db.refresh(category)
        return category

    async def delete_category(self, category_id: int, user: User) -> bool:
        """Delete an owned category; items keep existing, uncategorized.

        Unknown or foreign ids are a no-op (returns False).
        """
        await self.db.execute(
            update(Item)
            .where(Item.category_id == category_id, Item.user_id == user.id)
            .values(category_id=None)
        )
        result = await self.db.execute(
            delete(Category).where(Category.id == category_id, Category.user_id == user.id)
        )
        return result.rowcount > 0

    async def _get_user_category(self, category_id: int, user: User) -> Category:
        """Fetch a category owned by the user; anything else is "not found"."""
        result = await self.db.execute(
            select(Category).where(Category.id == category_id, Category.user_id == user.id)
        )
        category = result.scalar_one_or_none()
        if not category:
            raise NotFoundError("Category")
        return category
