"""Pydantic schemas for tag endpoints."""
from uuid import UUID

from pydantic import BaseModel


class TagCount(BaseModel):
    """Schema for a tag with its usage count in the requested scope."""

    id: UUID
    name: str
    color: str | None = None
    bookmark_count: int


class TagListResponse(BaseModel):
    """Schema for the tags list response."""

    tags: list[TagCount]
