"""Organization and workspace endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_principal
from core.principal import Principal
from schemas.invitation import InvitationResponse
from schemas.workspace import (
    OrganizationCreate,
    OrganizationResponse,
    OrganizationWithWorkspaceResponse,
    WorkspaceCreate,
    WorkspaceResponse,
    WorkspaceWithRole,
)
from services import invitation_service, workspace_service

router = APIRouter(tags=["workspaces"])


@router.post(
    "/organizations/",
    response_model=OrganizationWithWorkspaceResponse,
    status_code=201,
)
async def create_organization(
    data: OrganizationCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> OrganizationWithWorkspaceResponse:
    """Create an organization owned by the current user, with its first workspace."""
    organization, workspace = await workspace_service.create_organization_with_workspace(
        db, principal, data,
    )
    return OrganizationWithWorkspaceResponse(
        organization=OrganizationResponse.model_validate(organization),
        workspace=WorkspaceResponse.model_validate(workspace),
    )


@router.get("/organizations/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> OrganizationResponse:
    """Get organization metadata (owner and workspace members only)."""
    organization = await workspace_service.get_organization(db, principal, organization_id)
    return OrganizationResponse.model_validate(organization)


@router.post(
    "/organizations/{organization_id}/workspaces",
    response_model=WorkspaceResponse,
    status_code=201,
)
async def create_workspace(
    organization_id: UUID,
    data: WorkspaceCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> WorkspaceResponse:
    """Create another workspace in an organization (owner or admin only)."""
    workspace = await workspace_service.create_workspace(db, principal, organization_id, data)
    return WorkspaceResponse.model_validate(workspace)


@router.get(
    "/organizations/{organization_id}/invitations",
    response_model=list[InvitationResponse],
)
async def list_pending_invitations(
    organization_id: UUID,
    include_expired: bool = False,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> list[InvitationResponse]:
    """
    List the organization's pending invitations (owner only).

    Expired invitations are included, flagged `is_expired`, when
    `include_expired=true`.
    """
    return await invitation_service.get_pending_invitations(
        db, organization_id, principal, include_expired=include_expired,
    )


@router.get("/workspaces/", response_model=list[WorkspaceWithRole])
async def list_workspaces(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> list[WorkspaceWithRole]:
    """List the workspaces the current user belongs to, with their role."""
    return await workspace_service.get_user_workspaces(db, principal)


@router.get("/workspaces/{workspace_id}", response_model=WorkspaceWithRole)
async def get_workspace(
    workspace_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> WorkspaceWithRole:
    """Get a workspace the current user is a member of."""
    return await workspace_service.get_workspace(db, principal, workspace_id)
