"""Tag model for storing user tags."""
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, UUIDv7Mixin, utcnow

if TYPE_CHECKING:
    from models.bookmark import Bookmark
    from models.user import User


# Junction table for many-to-many relationship between bookmarks and tags
bookmark_tags = Table(
    "bookmark_tags",
    Base.metadata,
    Column(
        "bookmark_id",
        Uuid,
        ForeignKey("bookmarks.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        Uuid,
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    # Index for lookups by tag (composite PK already indexes bookmark_id first)
    Index("ix_bookmark_tags_tag_id", "tag_id"),
)


def normalize_tag_name(name: str) -> str:
    """Key used for case-insensitive tag identity."""
    return name.strip().lower()


class Tag(Base, UUIDv7Mixin):
    """
    Tag model - unique per user, case-insensitively.

    `name` keeps the casing the tag was first written with ("JavaScript");
    `normalized_name` ("javascript") carries the uniqueness constraint.
    """

    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("user_id", "normalized_name", name="uq_tags_user_id_normalized_name"),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(50), nullable=False)
    color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    user: Mapped["User"] = relationship()
    bookmarks: Mapped[list["Bookmark"]] = relationship(
        secondary=bookmark_tags,
        back_populates="tag_objects",
    )
