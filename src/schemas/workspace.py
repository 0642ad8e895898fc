"""Pydantic schemas for organizations and workspaces."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class OrganizationCreate(BaseModel):
    """Create an organization together with its first workspace."""

    organization_name: str = Field(..., min_length=1, max_length=100)
    workspace_name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None


class WorkspaceCreate(BaseModel):
    """Create an additional workspace inside an existing organization."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    is_private: bool = False


class OrganizationResponse(BaseModel):
    """Public organization metadata."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: str | None
    owner_id: UUID
    created_at: datetime


class WorkspaceResponse(BaseModel):
    """Workspace metadata."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    name: str
    slug: str
    description: str | None
    is_private: bool
    created_at: datetime


class WorkspaceWithRole(WorkspaceResponse):
    """Workspace as listed for a member, with that member's role."""

    role: str
    member_count: int = 0


class OrganizationWithWorkspaceResponse(BaseModel):
    """Result of creating an organization with its first workspace."""

    organization: OrganizationResponse
    workspace: WorkspaceResponse
