"""User model."""

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tally.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    # Subject issued by the identity provider
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    preferences: Mapped[dict | None] = mapped_column(JSON, default=None, nullable=True)

    categories = relationship("Category", back_populates="user", lazy="select")
    items = relationship("Item", back_populates="user", lazy="select")

    @property
    def theme(self) -> str:
        return (self.preferences or {}).get("theme", "light")
