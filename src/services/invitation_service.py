"""
Service layer for invitations.

An invitation moves pending -> accepted exactly once. Expiry is not stored; a
pending invitation past expires_at is reported as expired when read.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.principal import Principal
from models.base import as_utc, utcnow
from models.invitation import Invitation, InvitationStatus
from models.organization import Organization
from models.user import User
from models.workspace import Workspace, WorkspaceMember, WorkspaceRole
from schemas.invitation import (
    InvitationAcceptedResponse,
    InvitationCreate,
    InvitationPreview,
    InvitationResponse,
)
from services.access_control import Action, get_membership, require_access
from services.exceptions import (
    ConflictError,
    ForbiddenError,
    InputValidationError,
    NotFoundError,
)
from services.notification_service import InvitationPayload, build_invite_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedInvitation:
    """A stored invitation and the email that announces it."""

    invitation: Invitation
    notification: InvitationPayload


def generate_token() -> str:
    """Unguessable single-use token (43 URL-safe characters)."""
    return secrets.token_urlsafe(32)


async def _is_already_member(
    db: AsyncSession,
    organization: Organization,
    workspace_id: UUID | None,
    email: str,
) -> bool:
    """
    True if a user with `email` already belongs to the invitation's target.

    For a workspace invitation that means a membership in that workspace; for
    an organization-only invitation, ownership or any workspace membership.
    """
    stmt = (
        select(WorkspaceMember.id)
        .join(User, WorkspaceMember.user_id == User.id)
        .where(func.lower(User.email) == email)
    )
    if workspace_id is not None:
        stmt = stmt.where(WorkspaceMember.workspace_id == workspace_id)
    else:
        owner = await db.get(User, organization.owner_id)
        if owner is not None and owner.email.lower() == email:
            return True
        stmt = stmt.join(Workspace, WorkspaceMember.workspace_id == Workspace.id).where(
            Workspace.organization_id == organization.id,
        )
    result = await db.execute(stmt.limit(1))
    return result.first() is not None


async def _find_pending(
    db: AsyncSession,
    email: str,
    organization_id: UUID,
    workspace_id: UUID | None,
) -> Invitation | None:
    stmt = select(Invitation).where(
        Invitation.email == email,
        Invitation.organization_id == organization_id,
        Invitation.status == InvitationStatus.PENDING,
    )
    if workspace_id is None:
        stmt = stmt.where(Invitation.workspace_id.is_(None))
    else:
        stmt = stmt.where(Invitation.workspace_id == workspace_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def invite_user(
    db: AsyncSession,
    principal: Principal,
    data: InvitationCreate,
) -> IssuedInvitation:
    """
    Invite an email address into an organization, optionally into one workspace.

    An expired pending invitation for the same target does not block a new
    one: the row is reissued with a fresh token and expiry.

    Args:
        db: Database session.
        principal: The inviter; must own the organization.
        data: Invitation data.

    Returns:
        The pending invitation and its notification payload. Sending is left
        to the caller, after the invitation has been committed.

    Raises:
        NotFoundError: If the organization or workspace does not exist (or the
            organization is not visible to the principal).
        ForbiddenError: If the principal is a member but not the owner.
        InputValidationError: If the workspace is in another organization or
            the role is 'owner'.
        ConflictError: If the invitee is already a member or a live pending
            invitation exists.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    organization = await db.get(Organization, data.organization_id)
    await require_access(
        db, principal, Action.ADMIN, organization, "Organization", data.organization_id,
    )

    workspace = None
    if data.workspace_id is not None:
        workspace = await db.get(Workspace, data.workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace", data.workspace_id)
        if workspace.organization_id != organization.id:
            raise InputValidationError("Workspace does not belong to this organization")

    if data.role == WorkspaceRole.OWNER:
        raise InputValidationError("Invitations cannot grant the owner role")

    email = data.email.strip().lower()
    if await _is_already_member(db, organization, data.workspace_id, email):
        raise ConflictError(f"{email} is already a member")

    settings = get_settings()
    expires_at = utcnow() + timedelta(days=settings.invitation_ttl_days)

    invitation = await _find_pending(db, email, organization.id, data.workspace_id)
    if invitation is not None:
        if not invitation.is_expired():
            raise ConflictError(f"A pending invitation for {email} already exists")
        logger.info("Reissuing expired invitation %s for %s", invitation.id, email)
        invitation.token = generate_token()
        invitation.expires_at = expires_at
        invitation.role = data.role
        invitation.invited_by_id = principal.id
        await db.flush()
    else:
        invitation = Invitation(
            organization_id=organization.id,
            workspace_id=data.workspace_id,
            email=email,
            role=data.role,
            token=generate_token(),
            invited_by_id=principal.id,
            expires_at=expires_at,
            status=InvitationStatus.PENDING,
        )
        try:
            async with db.begin_nested():
                db.add(invitation)
                await db.flush()
        except IntegrityError as e:
            raise ConflictError(f"A pending invitation for {email} already exists") from e

    logger.info(
        "Invitation %s created for %s (organization=%s workspace=%s)",
        invitation.id, email, organization.id, data.workspace_id,
    )

    notification = InvitationPayload(
        to=email,
        invited_by_email=principal.email,
        organization_name=organization.name,
        workspace_name=workspace.name if workspace else None,
        role=str(data.role),
        invite_url=build_invite_url(settings.app_url, invitation.token),
    )
    return IssuedInvitation(invitation, notification)


async def _get_invitation_by_token(db: AsyncSession, token: str) -> Invitation | None:
    result = await db.execute(select(Invitation).where(Invitation.token == token))
    return result.scalar_one_or_none()


async def _grant_membership(
    db: AsyncSession,
    user_id: UUID,
    workspace_id: UUID,
    role: WorkspaceRole,
) -> WorkspaceMember:
    """
    Create the membership, or reuse an existing one.

    An existing membership is upgraded when the invitation grants more, and
    never downgraded.
    """
    existing = await get_membership(db, user_id, workspace_id)
    if existing is None:
        membership = WorkspaceMember(user_id=user_id, workspace_id=workspace_id, role=role)
        try:
            async with db.begin_nested():
                db.add(membership)
                await db.flush()
            return membership
        except IntegrityError:
            logger.info("Membership for user %s created concurrently; re-fetching", user_id)
        existing = await get_membership(db, user_id, workspace_id)
        if existing is None:
            raise ConflictError("Membership could not be created; please retry")

    if role.rank > existing.workspace_role.rank:
        existing.role = role
        await db.flush()
    return existing


async def accept_invitation(
    db: AsyncSession,
    token: str,
    principal: Principal,
) -> InvitationAcceptedResponse:
    """
    Redeem an invitation token for the principal.

    The status flip is a conditional UPDATE (WHERE status = 'pending'), so of
    two concurrent redemptions exactly one succeeds; the other sees zero rows
    updated and gets ConflictError. The flip and the membership grant share a
    SAVEPOINT and succeed or fail together.

    Raises:
        NotFoundError: If no invitation has this token.
        ConflictError: If the invitation was already accepted.
        InputValidationError: If the invitation has expired.
        ForbiddenError: If the principal's email differs from the invited one
            (compared case-insensitively).
    """
    invitation = await _get_invitation_by_token(db, token)
    if invitation is None:
        raise NotFoundError("Invitation")
    if invitation.status == InvitationStatus.ACCEPTED:
        raise ConflictError("Invitation has already been accepted")
    if invitation.is_expired():
        raise InputValidationError("Invitation has expired")
    if invitation.email.lower() != principal.normalized_email:
        raise ForbiddenError("This invitation was sent to a different email address")

    role = WorkspaceRole(invitation.role)
    try:
        async with db.begin_nested():
            result = await db.execute(
                update(Invitation)
                .where(
                    Invitation.id == invitation.id,
                    Invitation.status == InvitationStatus.PENDING,
                )
                .values(
                    status=InvitationStatus.ACCEPTED,
                    accepted_at=utcnow(),
                    accepted_by_id=principal.id,
                ),
            )
            if result.rowcount == 0:
                raise ConflictError("Invitation has already been accepted")
            if invitation.workspace_id is not None:
                await _grant_membership(db, principal.id, invitation.workspace_id, role)
    except IntegrityError as e:
        raise ConflictError("Invitation could not be accepted; please retry") from e

    logger.info("Invitation %s accepted by user %s", invitation.id, principal.id)
    return InvitationAcceptedResponse(
        invitation_id=invitation.id,
        organization_id=invitation.organization_id,
        workspace_id=invitation.workspace_id,
        role=str(role),
    )


def to_response(invitation: Invitation) -> InvitationResponse:
    """Owner-facing view of an invitation, annotated with is_expired."""
    return InvitationResponse(
        id=invitation.id,
        email=invitation.email,
        role=invitation.role,
        organization_id=invitation.organization_id,
        workspace_id=invitation.workspace_id,
        status=invitation.status,
        expires_at=as_utc(invitation.expires_at),
        accepted_at=as_utc(invitation.accepted_at) if invitation.accepted_at else None,
        created_at=as_utc(invitation.created_at),
        is_expired=invitation.is_expired(),
    )


async def get_pending_invitations(
    db: AsyncSession,
    organization_id: UUID,
    principal: Principal,
    include_expired: bool = False,
) -> list[InvitationResponse]:
    """
    List an organization's pending invitations, newest first.

    Args:
        db: Database session.
        organization_id: Organization whose invitations to list.
        principal: Must own the organization.
        include_expired: Also return pending invitations past their expiry.

    Returns:
        Invitations annotated with is_expired.
    """
    organization = await db.get(Organization, organization_id)
    await require_access(db, principal, Action.ADMIN, organization, "Organization", organization_id)

    result = await db.execute(
        select(Invitation)
        .where(
            Invitation.organization_id == organization_id,
            Invitation.status == InvitationStatus.PENDING,
        )
        .order_by(Invitation.created_at.desc(), Invitation.id.desc()),
    )
    invitations = [to_response(inv) for inv in result.scalars()]
    if not include_expired:
        invitations = [inv for inv in invitations if not inv.is_expired]
    return invitations


async def get_invitation_preview(db: AsyncSession, token: str) -> InvitationPreview:
    """
    What the holder of a token sees before accepting.

    The invited email is not included; the token alone must not reveal it.

    Raises:
        NotFoundError: If no invitation has this token.
    """
    invitation = await _get_invitation_by_token(db, token)
    if invitation is None:
        raise NotFoundError("Invitation")

    organization = await db.get(Organization, invitation.organization_id)
    workspace = None
    if invitation.workspace_id is not None:
        workspace = await db.get(Workspace, invitation.workspace_id)

    return InvitationPreview(
        organization_name=organization.name,
        workspace_name=workspace.name if workspace else None,
        role=invitation.role,
        status=invitation.status,
        expires_at=as_utc(invitation.expires_at),
        is_expired=invitation.is_expired(),
    )
