"""Pydantic schemas for folders."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.validators import validate_hex_color


class FolderCreate(BaseModel):
    """Schema for creating a folder. `workspace_id` None means the personal space."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    color: str | None = None
    icon: str | None = Field(default=None, max_length=50)
    parent_id: UUID | None = None
    workspace_id: UUID | None = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: object) -> object:
        """Trim surrounding whitespace so '   ' fails min_length."""
        return v.strip() if isinstance(v, str) else v

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str | None) -> str | None:
        """Validate hex color."""
        return validate_hex_color(v)


class FolderUpdate(BaseModel):
    """
    Schema for updating a folder.

    Only fields present in the request are applied. Send `"parent_id": null` to
    move a folder to the top level.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    color: str | None = None
    icon: str | None = Field(default=None, max_length=50)
    parent_id: UUID | None = None
    sort_order: int | None = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: object) -> object:
        """Trim surrounding whitespace."""
        return v.strip() if isinstance(v, str) else v

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str | None) -> str | None:
        """Validate hex color."""
        return validate_hex_color(v)


class FolderResponse(BaseModel):
    """Schema for a folder."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    color: str | None
    icon: str | None
    parent_id: UUID | None
    user_id: UUID | None
    workspace_id: UUID | None
    is_default: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime


class FolderWithCounts(FolderResponse):
    """Folder with live counts (archived bookmarks are not counted)."""

    bookmark_count: int = 0
    child_count: int = 0


class AllFoldersResponse(BaseModel):
    """Every folder visible to the principal, partitioned by scope."""

    personal: list[FolderWithCounts]
    workspaces: dict[UUID, list[FolderWithCounts]]
