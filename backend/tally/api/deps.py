"""Shared API dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tally.core.database import get_db
from tally.core.security import get_current_user
from tally.services.category_service import CategoryService
from tally.services.item_service import ItemService
from tally.services.user_service import UserService


def get_item_service(db: AsyncSession = Depends(get_db)) -> ItemService:
    return ItemService(db)


def get_category_service(db: AsyncSession = Depends(get_db)) -> CategoryService:
    return CategoryService(db)


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


__all__ = [
    "get_db",
    "get_current_user",
    "get_item_service",
    "get_category_service",
    "get_user_service",
]
