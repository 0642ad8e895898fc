"""Pydantic schemas for invitations."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from models.workspace import WorkspaceRole


class InvitationCreate(BaseModel):
    """Invite an email address to an organization, optionally into one workspace."""

    email: EmailStr
    role: WorkspaceRole = WorkspaceRole.MEMBER
    organization_id: UUID
    workspace_id: UUID | None = None


class InvitationAccept(BaseModel):
    """Redeem an invitation token."""

    token: str = Field(..., min_length=1, max_length=64)


class InvitationResponse(BaseModel):
    """Invitation as shown to organization owners (the token is never included)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    role: str
    organization_id: UUID
    workspace_id: UUID | None
    status: str
    expires_at: datetime
    accepted_at: datetime | None
    created_at: datetime
    is_expired: bool = False


class InvitationPreview(BaseModel):
    """What an invitee sees on the invitation landing page before accepting."""

    organization_name: str
    workspace_name: str | None
    role: str
    status: str
    expires_at: datetime
    is_expired: bool


class InvitationAcceptedResponse(BaseModel):
    """Result of a successful redemption."""

    invitation_id: UUID
    organization_id: UUID
    workspace_id: UUID | None
    role: str
