"""SQLAlchemy models."""

from tally.models.base import Base
from tally.models.category import Category
from tally.models.item import Item
from tally.models.user import User

__all__ = [
    "Base",
    "User",
    "Category",
    "Item",
]
