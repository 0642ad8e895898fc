"""
Access control for personal, workspace and organization resources.

`authorize` is a pure decision over the current store state: it may run
read-only queries (membership, organization lookups) but never writes. Callers
that want an exception instead of a decision use `require` /
`require_scope_access`.

Existence-leak policy:

- Leaf resources addressed by id (folders, bookmarks, invitations) that belong
  to another tenant are reported as NOT_FOUND, exactly like missing rows.
- A workspace named as a target scope is reported as FORBIDDEN when it exists
  but the principal has no membership in it, and NOT_FOUND when it does not
  exist.
- An organization the principal has no relationship with is NOT_FOUND; a
  member (of any of its workspaces) attempting an owner-only action gets
  FORBIDDEN.
"""
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Literal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.principal import Principal
from models.bookmark import Bookmark
from models.folder import Folder
from models.invitation import Invitation
from models.organization import Organization
from models.workspace import Workspace, WorkspaceMember, WorkspaceRole
from services.exceptions import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


class Action(StrEnum):
    """What the principal wants to do with a resource."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    ADMIN = "admin"


class DenyReason(StrEnum):
    """Classified denial reasons; never free text."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Allow:
    """
    Access granted.

    `role` is the principal's workspace role when the decision was derived from a
    membership, None for personal resources and organization ownership.
    """

    role: WorkspaceRole | None = None
    allowed: Literal[True] = True


@dataclass(frozen=True)
class Deny:
    """Access refused, with a classified reason."""

    reason: DenyReason
    message: str = ""
    allowed: Literal[False] = False


Decision = Allow | Deny
Resource = Organization | Workspace | Folder | Bookmark | Invitation


async def get_membership(
    db: AsyncSession,
    user_id: UUID,
    workspace_id: UUID,
) -> WorkspaceMember | None:
    """Return the user's membership row in a workspace, if any."""
    result = await db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.workspace_id == workspace_id,
        ),
    )
    return result.scalar_one_or_none()


async def get_role(
    db: AsyncSession,
    user_id: UUID,
    workspace_id: UUID,
) -> WorkspaceRole | None:
    """Return the user's role in a workspace, or None if not a member."""
    membership = await get_membership(db, user_id, workspace_id)
    return membership.workspace_role if membership else None


async def is_organization_member(
    db: AsyncSession,
    user_id: UUID,
    organization_id: UUID,
) -> bool:
    """True if the user is a member of at least one workspace of the organization."""
    result = await db.execute(
        select(WorkspaceMember.id)
        .join(Workspace, WorkspaceMember.workspace_id == Workspace.id)
        .where(
            WorkspaceMember.user_id == user_id,
            Workspace.organization_id == organization_id,
        )
        .limit(1),
    )
    return result.first() is not None


async def authorize(
    db: AsyncSession,
    principal: Principal,
    action: Action,
    resource: Resource | None,
) -> Decision:
    """
    Decide whether `principal` may perform `action` on `resource`.

    Args:
        db: Database session (read-only use).
        principal: The authenticated user.
        action: Requested action.
        resource: The loaded resource, or None if the lookup found nothing.

    Returns:
        Allow (with the derived workspace role when applicable) or Deny.
    """
    if resource is None:
        decision: Decision = Deny(DenyReason.NOT_FOUND, "Resource not found")
    elif isinstance(resource, Organization):
        decision = await _authorize_organization(db, principal, action, resource)
    elif isinstance(resource, Workspace):
        decision = await _authorize_workspace(db, principal, action, resource)
    elif isinstance(resource, Folder):
        decision = await _authorize_folder(db, principal, action, resource)
    elif isinstance(resource, Bookmark):
        decision = await _authorize_bookmark(db, principal, action, resource)
    elif isinstance(resource, Invitation):
        decision = await _authorize_invitation(db, principal, action, resource)
    else:
        raise TypeError(f"Unsupported resource type: {type(resource).__name__}")

    if isinstance(decision, Deny):
        logger.info(
            "Access denied: user=%s action=%s resource=%s reason=%s",
            principal.id,
            action,
            type(resource).__name__ if resource is not None else None,
            decision.reason,
        )
    return decision


async def _authorize_organization(
    db: AsyncSession,
    principal: Principal,
    action: Action,
    organization: Organization,
) -> Decision:
    if organization.owner_id == principal.id:
        return Allow()

    is_member = await is_organization_member(db, principal.id, organization.id)
    if not is_member:
        return Deny(DenyReason.NOT_FOUND, "Organization not found")
    if action == Action.READ:
        # Members see the organization's public metadata only
        return Allow()
    return Deny(DenyReason.FORBIDDEN, "Only the organization owner can do this")


async def _authorize_workspace(
    db: AsyncSession,
    principal: Principal,
    action: Action,
    workspace: Workspace,
) -> Decision:
    if action == Action.DELETE:
        organization = await db.get(Organization, workspace.organization_id)
        if organization is not None and organization.owner_id == principal.id:
            return Allow(role=await get_role(db, principal.id, workspace.id))
        return Deny(DenyReason.FORBIDDEN, "Only the organization owner can delete a workspace")

    role = await get_role(db, principal.id, workspace.id)
    if role is None:
        return Deny(DenyReason.FORBIDDEN, "You don't have access to this workspace")

    required = {
        Action.READ: WorkspaceRole.VIEWER,
        Action.WRITE: WorkspaceRole.MEMBER,
        Action.ADMIN: WorkspaceRole.ADMIN,
    }[action]
    if not role.at_least(required):
        return Deny(
            DenyReason.FORBIDDEN,
            f"Workspace role '{role}' cannot {action} here (requires '{required}')",
        )
    return Allow(role=role)


async def _authorize_workspace_scoped(
    db: AsyncSession,
    principal: Principal,
    action: Action,
    workspace_id: UUID,
    owner_id: UUID | None,
    kind: str,
    creator_writes_only: bool = False,
) -> Decision:
    """
    Shared rules for folders and bookmarks that live inside a workspace.

    Members may delete what they created; anything else needs an admin. With
    `creator_writes_only`, edits follow the same rule as deletes.
    """
    role = await get_role(db, principal.id, workspace_id)
    if role is None:
        return Deny(DenyReason.NOT_FOUND, f"{kind} not found")

    if action == Action.READ:
        return Allow(role=role)

    is_own = owner_id is not None and owner_id == principal.id
    restricted = action == Action.DELETE or (action == Action.WRITE and creator_writes_only)
    if not restricted or is_own:
        required = WorkspaceRole.MEMBER
    else:
        required = WorkspaceRole.ADMIN

    if not role.at_least(required):
        return Deny(
            DenyReason.FORBIDDEN,
            f"Workspace role '{role}' cannot {action} this {kind.lower()}",
        )
    return Allow(role=role)


async def _authorize_folder(
    db: AsyncSession,
    principal: Principal,
    action: Action,
    folder: Folder,
) -> Decision:
    if folder.workspace_id is None:
        if folder.user_id == principal.id:
            return Allow()
        return Deny(DenyReason.NOT_FOUND, "Folder not found")
    return await _authorize_workspace_scoped(
        db, principal, action, folder.workspace_id, folder.created_by_id, "Folder",
    )


async def _authorize_bookmark(
    db: AsyncSession,
    principal: Principal,
    action: Action,
    bookmark: Bookmark,
) -> Decision:
    is_own = bookmark.user_id == principal.id
    if bookmark.workspace_id is None:
        if is_own:
            return Allow()
        return Deny(DenyReason.NOT_FOUND, "Bookmark not found")
    # Private workspace bookmarks are visible to their creator only
    if bookmark.is_private and not is_own:
        return Deny(DenyReason.NOT_FOUND, "Bookmark not found")
    return await _authorize_workspace_scoped(
        db, principal, action, bookmark.workspace_id, bookmark.user_id, "Bookmark",
        creator_writes_only=True,
    )


async def _authorize_invitation(
    db: AsyncSession,
    principal: Principal,
    action: Action,
    invitation: Invitation,
) -> Decision:
    organization = await db.get(Organization, invitation.organization_id)
    if organization is None:
        return Deny(DenyReason.NOT_FOUND, "Invitation not found")
    if organization.owner_id == principal.id:
        return Allow()
    return Deny(DenyReason.NOT_FOUND, "Invitation not found")


def require(decision: Decision, resource: str, resource_id: object | None = None) -> Allow:
    """
    Convert a Deny into the matching typed failure.

    Returns:
        The Allow decision, so callers can read the derived role.

    Raises:
        NotFoundError: For NOT_FOUND denials.
        ForbiddenError: For FORBIDDEN denials.
    """
    if isinstance(decision, Allow):
        return decision
    if decision.reason == DenyReason.NOT_FOUND:
        raise NotFoundError(resource, resource_id)
    raise ForbiddenError(decision.message or f"Access to {resource.lower()} denied")


async def require_access(
    db: AsyncSession,
    principal: Principal,
    action: Action,
    resource: Resource | None,
    resource_name: str,
    resource_id: object | None = None,
) -> Allow:
    """Authorize and raise on denial."""
    decision = await authorize(db, principal, action, resource)
    return require(decision, resource_name, resource_id)


async def require_scope_access(
    db: AsyncSession,
    principal: Principal,
    action: Action,
    workspace_id: UUID | None,
) -> Workspace | None:
    """
    Authorize `action` against a scope.

    The personal scope (workspace_id None) always belongs to the principal.
    For a workspace scope the workspace must exist and the principal's role must
    allow the action.

    Returns:
        The workspace for workspace scopes, None for the personal scope.

    Raises:
        NotFoundError: If the workspace does not exist.
        ForbiddenError: If the principal is not a member or the role is too low.
    """
    if workspace_id is None:
        return None
    workspace = await db.get(Workspace, workspace_id)
    await require_access(db, principal, action, workspace, "Workspace", workspace_id)
    return workspace
