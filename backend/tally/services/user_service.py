"""User provisioning and profile service."""

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from tally.models.base import utcnow
from tally.models.category import Category
from tally.models.item import Item
from tally.models.user import User
from tally.schemas.user import UserUpdate


def profile_from_claims(payload: dict) -> dict:
    """Map OIDC claims to user columns."""
    return {
        "id": payload["sub"],
        "email": payload.get("email") or None,
        "first_name": payload.get("given_name") or None,
        "last_name": payload.get("family_name") or None,
        "profile_image_url": payload.get("picture") or None,
    }


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def upsert_user(self, profile: dict) -> User:
        """Insert the user, or update its profile if the id already exists."""
        dialect = self.db.get_bind().dialect.name
        insert = sqlite.insert if dialect == "sqlite" else postgresql.insert

        now = utcnow()
        values = {**profile, "created_at": now, "updated_at": now}
        changes = {k: v for k, v in profile.items() if k != "id"}
        stmt = (
            insert(User)
            .values(**values)
            .on_conflict_do_update(
                index_elements=[User.id],
                set_={**changes, "updated_at": now},
            )
            .returning(User)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def update_profile(self, user: User, data: UserUpdate) -> User:
        update_data = data.model_dump(exclude_unset=True)
        theme = update_data.pop("theme", None)
        for key, value in update_data.items():
            setattr(user, key, value)
        if theme is not None:
            # Reassign so the JSON column is flagged dirty
            user.preferences = {**(user.preferences or {}), "theme": theme}
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def delete_account(self, user: User) -> None:
        """Remove the user and everything they own."""
        await self.db.execute(delete(Item).where(Item.user_id == user.id))
        await self.db.execute(delete(Category).where(Category.user_id == user.id))
        await self.db.execute(delete(User).where(User.id == user.id))
