"""User schemas for request/response validation."""

from datetime import datetime
from typing import Literal

from tally.schemas.base import CamelModel


class UserResponse(CamelModel):
    id: str
    email: str | None
    first_name: str | None
    last_name: str | None
    profile_image_url: str | None
    theme: str = "light"
    created_at: datetime
    updated_at: datetime


class UserUpdate(CamelModel):
    first_name: str | None = None
    last_name: str | None = None
    theme: Literal["light", "dark"] | None = None
