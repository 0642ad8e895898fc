"""User model for storing authenticated users."""
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.organization import Organization
    from models.workspace import WorkspaceMember


class UserRole(StrEnum):
    """Application-wide role (distinct from per-workspace roles)."""

    USER = "user"
    ADMIN = "admin"


class User(Base, UUIDv7Mixin, TimestampMixin):
    """User model - stores identity-provider user info for foreign key relationships."""

    __tablename__ = "users"

    auth0_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        comment="Auth0 'sub' claim - unique identifier from Auth0",
    )
    email: Mapped[str] = mapped_column(String(255), index=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER, nullable=False)

    owned_organizations: Mapped[list["Organization"]] = relationship(back_populates="owner")
    memberships: Mapped[list["WorkspaceMember"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )
