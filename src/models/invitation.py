"""Invitation model - a single-use token that turns an email into a member."""
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin, as_utc, utcnow

if TYPE_CHECKING:
    from models.organization import Organization
    from models.workspace import Workspace


class InvitationStatus(StrEnum):
    """
    Stored invitation states.

    Expiry is not a stored state: a pending invitation whose expires_at has
    passed is reported as expired when read.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"


class Invitation(Base, UUIDv7Mixin, TimestampMixin):
    """
    Invitation model.

    Invitations are never deleted; accepted rows stay as an audit record. At
    most one pending invitation exists per (email, organization, workspace).
    """

    __tablename__ = "invitations"
    __table_args__ = (
        Index(
            "uq_invitations_pending_organization",
            "email",
            "organization_id",
            unique=True,
            postgresql_where=text("status = 'pending' AND workspace_id IS NULL"),
            sqlite_where=text("status = 'pending' AND workspace_id IS NULL"),
        ),
        Index(
            "uq_invitations_pending_workspace",
            "email",
            "organization_id",
            "workspace_id",
            unique=True,
            postgresql_where=text("status = 'pending' AND workspace_id IS NOT NULL"),
            sqlite_where=text("status = 'pending' AND workspace_id IS NOT NULL"),
        ),
    )

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
    )
    workspace_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    # Stored lower-cased; redemption compares case-insensitively
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    token: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    invited_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=InvitationStatus.PENDING, nullable=False,
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    organization: Mapped["Organization"] = relationship()
    workspace: Mapped["Workspace | None"] = relationship()

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once `now` is past expires_at (accepted invitations never expire)."""
        if self.status == InvitationStatus.ACCEPTED:
            return False
        now = now or utcnow()
        return as_utc(now) > as_utc(self.expires_at)
