"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator, model_validator

from schemas.validators import validate_notes_length, validate_tag_names, validate_title_length

BookmarkFilter = Literal["recent", "favorites", "shared"]


class BookmarkMetadata(BaseModel):
    """Snapshot of page metadata captured when the bookmark is saved."""

    favicon: str | None = None
    image_url: str | None = None
    site_name: str | None = Field(default=None, max_length=255)
    author: str | None = Field(default=None, max_length=255)
    published_at: datetime | None = None
    description: str | None = None


class BookmarkCreate(BaseModel):
    """Schema for creating a new bookmark. `workspace_id` None means the personal space."""

    # HttpUrl normalizes root domains with trailing slash (example.com -> example.com/)
    # but preserves paths as-is (example.com/page stays example.com/page)
    url: HttpUrl
    title: str = Field(..., min_length=1)
    description: str | None = None
    notes: str | None = None
    folder_id: UUID | None = None
    workspace_id: UUID | None = None
    tags: list[str] = []
    is_private: bool = True
    metadata: BookmarkMetadata = Field(default_factory=BookmarkMetadata)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str]:
        """Validate tags and collapse case-insensitive duplicates."""
        if v is None:
            return []
        return validate_tag_names(v)

    @field_validator("title")
    @classmethod
    def check_title_length(cls, v: str) -> str:
        """Validate title length."""
        return validate_title_length(v)

    @field_validator("notes")
    @classmethod
    def check_notes_length(cls, v: str | None) -> str | None:
        """Validate notes length."""
        return validate_notes_length(v)


class BookmarkUpdate(BaseModel):
    """
    Schema for updating an existing bookmark.

    Only fields present in the request are applied; `"folder_id": null` moves the
    bookmark out of any folder.
    """

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    notes: str | None = None
    folder_id: UUID | None = None
    is_private: bool | None = None
    is_favorite: bool | None = None
    tags: list[str] | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        """Validate tags if provided."""
        if v is None:
            return None
        return validate_tag_names(v)

    @field_validator("title")
    @classmethod
    def check_title_length(cls, v: str | None) -> str | None:
        """Validate title length."""
        return validate_title_length(v)

    @field_validator("notes")
    @classmethod
    def check_notes_length(cls, v: str | None) -> str | None:
        """Validate notes length."""
        return validate_notes_length(v)


class BookmarkListParams(BaseModel):
    """
    Filters for listing bookmarks.

    Without `workspace_id` only the principal's personal bookmarks are listed.
    `limit` is capped by the service (see Settings.bookmarks_max_limit).
    """

    workspace_id: UUID | None = None
    folder_id: UUID | None = None
    is_private: bool | None = None
    filter: BookmarkFilter | None = None
    include_archived: bool = False
    limit: int | None = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)


class TagSummary(BaseModel):
    """Tag as embedded in bookmark responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    color: str | None = None


class BookmarkResponse(BaseModel):
    """
    Schema for bookmark responses.

    Note: Uses model_validator to read tags from the tag_objects relationship
    only when it has already been loaded, so serializing never triggers lazy
    loading outside the async context.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    url: str
    title: str
    description: str | None
    notes: str | None
    user_id: UUID
    workspace_id: UUID | None
    folder_id: UUID | None
    is_private: bool
    is_favorite: bool
    is_archived: bool
    favicon: str | None
    image_url: str | None
    site_name: str | None
    author: str | None
    published_at: datetime | None
    tags: list[TagSummary]
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def extract_tags(cls, data: Any) -> Any:
        """Pull tags out of an ORM object's loaded tag_objects relationship."""
        if hasattr(data, "__dict__") and not isinstance(data, dict):
            data_dict = {
                key: getattr(data, key)
                for key in cls.model_fields
                if key != "tags" and hasattr(data, key)
            }
            loaded = data.__dict__.get("tag_objects")
            data_dict["tags"] = [
                TagSummary.model_validate(tag)
                for tag in sorted(loaded or [], key=lambda t: t.normalized_name)
            ]
            return data_dict
        return data


class BookmarkListResponse(BaseModel):
    """Schema for a page of bookmarks."""

    items: list[BookmarkResponse]
    offset: int
    limit: int
    has_more: bool
