"""Invitation endpoints."""
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_principal, get_sender
from core.principal import Principal
from schemas.invitation import (
    InvitationAccept,
    InvitationAcceptedResponse,
    InvitationCreate,
    InvitationPreview,
    InvitationResponse,
)
from services import invitation_service
from services.notification_service import InvitationSender, deliver_invitation

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.post("/", response_model=InvitationResponse, status_code=201)
async def create_invitation(
    data: InvitationCreate,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
    sender: InvitationSender = Depends(get_sender),
) -> InvitationResponse:
    """
    Invite someone by email (organization owner only).

    The invitation is committed before the response; the email goes out
    afterwards in the background and a delivery failure does not undo it.
    """
    issued = await invitation_service.invite_user(db, principal, data)
    # The emailed token must already be stored when the email arrives
    await db.commit()
    background_tasks.add_task(deliver_invitation, sender, issued.notification)
    return invitation_service.to_response(issued.invitation)


@router.get("/{token}", response_model=InvitationPreview)
async def preview_invitation(
    token: str,
    db: AsyncSession = Depends(get_async_session),
) -> InvitationPreview:
    """Show what an invitation grants, for the invite landing page."""
    return await invitation_service.get_invitation_preview(db, token)


@router.post("/accept", response_model=InvitationAcceptedResponse)
async def accept_invitation(
    data: InvitationAccept,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> InvitationAcceptedResponse:
    """Accept an invitation addressed to the current user's email."""
    return await invitation_service.accept_invitation(db, data.token, principal)
