"""Bookmark model for storing user bookmarks."""
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.tag import bookmark_tags

if TYPE_CHECKING:
    from models.folder import Folder
    from models.tag import Tag
    from models.user import User
    from models.workspace import Workspace


class Bookmark(Base, UUIDv7Mixin, TimestampMixin):
    """Bookmark model - stores URLs with a metadata snapshot and tags."""

    __tablename__ = "bookmarks"
    __table_args__ = (
        # A URL can be saved once per personal space and once per workspace
        Index(
            "uq_bookmarks_personal_url",
            "user_id",
            "url",
            unique=True,
            postgresql_where=text("workspace_id IS NULL"),
            sqlite_where=text("workspace_id IS NULL"),
        ),
        Index(
            "uq_bookmarks_workspace_url",
            "user_id",
            "workspace_id",
            "url",
            unique=True,
            postgresql_where=text("workspace_id IS NOT NULL"),
            sqlite_where=text("workspace_id IS NOT NULL"),
        ),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    workspace_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    folder_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("folders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_private: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_archived: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True,
    )

    # Metadata snapshot captured when the bookmark was saved
    favicon: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    site_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    user: Mapped["User"] = relationship()
    workspace: Mapped["Workspace | None"] = relationship()
    folder: Mapped["Folder | None"] = relationship(back_populates="bookmarks")
    tag_objects: Mapped[list["Tag"]] = relationship(
        secondary=bookmark_tags,
        back_populates="bookmarks",
    )

    @property
    def is_personal(self) -> bool:
        """True if the bookmark lives in its creator's personal space."""
        return self.workspace_id is None
