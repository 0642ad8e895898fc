"""SQLAlchemy declarative base with common mixins."""
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from uuid6 import uuid7


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """
    Return `value` as an aware UTC datetime.

    SQLite hands back naive datetimes even for DateTime(timezone=True) columns;
    every stored timestamp is UTC, so naive values are tagged rather than converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UUIDv7Mixin:
    """
    Mixin that provides a UUIDv7 primary key.

    UUIDv7 values are time-ordered, so primary key order follows insertion order
    and index locality stays good while ids remain unguessable across tenants.
    """

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid7)


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at columns.

    All timestamps are timezone-aware (TIMESTAMP WITH TIME ZONE in PostgreSQL).
    Values are produced in Python with microsecond precision so ordering by
    creation time is stable on every backend.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,  # Index for "recent" listings
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
