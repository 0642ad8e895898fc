"""Service layer for organizations and workspaces."""
import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.principal import Principal
from models.organization import Organization
from models.workspace import Workspace, WorkspaceMember, WorkspaceRole
from schemas.validators import generate_slug
from schemas.workspace import OrganizationCreate, WorkspaceCreate, WorkspaceWithRole
from services.access_control import Action, get_role, require_access, require_scope_access
from services.exceptions import ConflictError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


def _next_free_slug(base: str, taken: set[str]) -> str:
    """`base`, or `base-2`, `base-3`, ... whichever is not taken yet."""
    if base not in taken:
        return base
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


async def _organization_slug(db: AsyncSession, name: str) -> str:
    base = generate_slug(name)
    result = await db.execute(select(Organization.slug).where(Organization.slug.startswith(base)))
    return _next_free_slug(base, set(result.scalars()))


async def _workspace_slug(db: AsyncSession, organization_id: UUID, name: str) -> str:
    base = generate_slug(name)
    result = await db.execute(
        select(Workspace.slug).where(
            Workspace.organization_id == organization_id,
            Workspace.slug.startswith(base),
        ),
    )
    return _next_free_slug(base, set(result.scalars()))


async def create_organization_with_workspace(
    db: AsyncSession,
    principal: Principal,
    data: OrganizationCreate,
) -> tuple[Organization, Workspace]:
    """
    Create an organization owned by the principal together with its first workspace.

    The principal becomes the workspace's 'owner' member.

    Raises:
        ConflictError: If a concurrent request took the generated slug.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    organization = Organization(
        name=data.organization_name,
        slug=await _organization_slug(db, data.organization_name),
        description=data.description,
        owner_id=principal.id,
    )
    try:
        async with db.begin_nested():
            db.add(organization)
            await db.flush()
            workspace = Workspace(
                organization_id=organization.id,
                name=data.workspace_name,
                slug=generate_slug(data.workspace_name),
                description=data.description,
                is_private=False,
            )
            db.add(workspace)
            await db.flush()
            db.add(
                WorkspaceMember(
                    user_id=principal.id,
                    workspace_id=workspace.id,
                    role=WorkspaceRole.OWNER,
                ),
            )
            await db.flush()
    except IntegrityError as e:
        raise ConflictError("Organization could not be created; please retry") from e

    logger.info("Organization %s created by user %s", organization.id, principal.id)
    return organization, workspace


async def _highest_role_in_organization(
    db: AsyncSession,
    user_id: UUID,
    organization_id: UUID,
) -> WorkspaceRole | None:
    result = await db.execute(
        select(WorkspaceMember.role)
        .join(Workspace, WorkspaceMember.workspace_id == Workspace.id)
        .where(
            WorkspaceMember.user_id == user_id,
            Workspace.organization_id == organization_id,
        ),
    )
    roles = [WorkspaceRole(role) for role in result.scalars()]
    return max(roles, key=lambda r: r.rank, default=None)


async def create_workspace(
    db: AsyncSession,
    principal: Principal,
    organization_id: UUID,
    data: WorkspaceCreate,
) -> Workspace:
    """
    Create another workspace in an existing organization.

    Allowed for the organization owner and for owner/admin members of any of
    its workspaces. The creator becomes the new workspace's 'owner' member.

    Raises:
        NotFoundError: If the organization does not exist or the principal has
            no relationship with it.
        ForbiddenError: If the principal is only a member/viewer.
        ConflictError: If a concurrent request took the generated slug.
    """
    organization = await db.get(Organization, organization_id)
    if organization is None:
        raise NotFoundError("Organization", organization_id)

    if organization.owner_id != principal.id:
        role = await _highest_role_in_organization(db, principal.id, organization_id)
        if role is None:
            raise NotFoundError("Organization", organization_id)
        if not role.at_least(WorkspaceRole.ADMIN):
            raise ForbiddenError("Only organization owners and admins can create workspaces")

    workspace = Workspace(
        organization_id=organization_id,
        name=data.name,
        slug=await _workspace_slug(db, organization_id, data.name),
        description=data.description,
        is_private=data.is_private,
    )
    try:
        async with db.begin_nested():
            db.add(workspace)
            await db.flush()
            db.add(
                WorkspaceMember(
                    user_id=principal.id,
                    workspace_id=workspace.id,
                    role=WorkspaceRole.OWNER,
                ),
            )
            await db.flush()
    except IntegrityError as e:
        raise ConflictError("A workspace with this name already exists") from e

    logger.info("Workspace %s created in organization %s", workspace.id, organization_id)
    return workspace


async def get_organization(
    db: AsyncSession,
    principal: Principal,
    organization_id: UUID,
) -> Organization:
    """Organization metadata, visible to its owner and to members of its workspaces."""
    organization = await db.get(Organization, organization_id)
    await require_access(db, principal, Action.READ, organization, "Organization", organization_id)
    return organization


def _member_count_subquery():
    return (
        select(func.count(WorkspaceMember.id))
        .where(WorkspaceMember.workspace_id == Workspace.id)
        .correlate(Workspace)
        .scalar_subquery()
    )


async def get_user_workspaces(db: AsyncSession, principal: Principal) -> list[WorkspaceWithRole]:
    """Every workspace the principal is a member of, with their role, oldest membership first."""
    result = await db.execute(
        select(Workspace, WorkspaceMember.role, _member_count_subquery().label("member_count"))
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(WorkspaceMember.user_id == principal.id)
        .order_by(WorkspaceMember.created_at.asc(), WorkspaceMember.id.asc()),
    )
    return [
        WorkspaceWithRole(
            **_workspace_fields(workspace),
            role=role,
            member_count=member_count,
        )
        for workspace, role, member_count in result
    ]


def _workspace_fields(workspace: Workspace) -> dict:
    return {
        "id": workspace.id,
        "organization_id": workspace.organization_id,
        "name": workspace.name,
        "slug": workspace.slug,
        "description": workspace.description,
        "is_private": workspace.is_private,
        "created_at": workspace.created_at,
    }


async def get_workspace(
    db: AsyncSession,
    principal: Principal,
    workspace_id: UUID,
) -> WorkspaceWithRole:
    """
    A workspace the principal is a member of.

    Raises:
        NotFoundError: If the workspace does not exist.
        ForbiddenError: If the principal is not a member.
    """
    workspace = await require_scope_access(db, principal, Action.READ, workspace_id)
    role = await get_role(db, principal.id, workspace_id)
    member_count = await db.scalar(
        select(func.count(WorkspaceMember.id)).where(WorkspaceMember.workspace_id == workspace_id),
    )
    return WorkspaceWithRole(**_workspace_fields(workspace), role=role, member_count=member_count)
