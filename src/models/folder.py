"""Folder model - a tree of folders per scope (personal or workspace)."""
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.bookmark import Bookmark


class Folder(Base, UUIDv7Mixin, TimestampMixin):
    """
    Folder model.

    A folder belongs to exactly one scope: a user's personal space (user_id set,
    workspace_id NULL) or a workspace (workspace_id set, user_id NULL). Within a
    scope at most one folder is the default folder; the two partial unique
    indexes below enforce that at the database level so concurrent lazy
    creation converges on a single row.
    """

    __tablename__ = "folders"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) != (workspace_id IS NULL)",
            name="ck_folders_exactly_one_scope",
        ),
        Index(
            "uq_folders_personal_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default AND workspace_id IS NULL"),
            sqlite_where=text("is_default = 1 AND workspace_id IS NULL"),
        ),
        Index(
            "uq_folders_workspace_default",
            "workspace_id",
            unique=True,
            postgresql_where=text("is_default AND workspace_id IS NOT NULL"),
            sqlite_where=text("is_default = 1 AND workspace_id IS NOT NULL"),
        ),
    )

    user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    workspace_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    # Who created a workspace folder; personal folders repeat user_id here
    created_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    parent_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("folders.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    bookmarks: Mapped[list["Bookmark"]] = relationship(back_populates="folder")

    @property
    def is_personal(self) -> bool:
        """True if the folder lives in a user's personal space."""
        return self.workspace_id is None

    def same_scope_as(self, workspace_id: UUID | None, user_id: UUID | None = None) -> bool:
        """
        True if this folder lives in the given scope.

        A workspace scope is identified by `workspace_id` alone; the personal
        scope needs the owning `user_id`.
        """
        if workspace_id is not None:
            return self.workspace_id == workspace_id
        return self.workspace_id is None and self.user_id == user_id
