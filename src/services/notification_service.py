"""
Invitation notifications.

Sending is best-effort: the invitation is already persisted when the sender
runs, and callers log (never propagate) a failure.
"""
import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvitationPayload:
    """Everything an invitation email needs."""

    to: str
    invited_by_email: str
    organization_name: str
    workspace_name: str | None
    role: str
    invite_url: str


class InvitationSender(Protocol):
    """Delivers an invitation to its recipient."""

    async def send(self, payload: InvitationPayload) -> None:
        """Deliver the invitation; raise on failure."""
        ...


def build_invite_url(app_url: str, token: str) -> str:
    """Public landing URL for an invitation token."""
    return f"{app_url.rstrip('/')}/invite/{token}"


def render_subject(payload: InvitationPayload) -> str:
    """Subject line naming the organization (and workspace when there is one)."""
    target = payload.organization_name
    if payload.workspace_name:
        target = f"{target} - {payload.workspace_name}"
    return f"You're invited to join {target}"


def render_body(payload: InvitationPayload) -> str:
    """Plain-text invitation body."""
    where = payload.organization_name
    if payload.workspace_name:
        where = f"the {payload.workspace_name} workspace in {payload.organization_name}"
    return (
        f"{payload.invited_by_email} invited you to join {where} as {payload.role}.\n\n"
        f"Accept the invitation here:\n{payload.invite_url}\n\n"
        "If you weren't expecting this invitation, you can ignore this email.\n"
    )


class LoggingInvitationSender:
    """Sender used when SMTP is not configured: records the invitation in the log."""

    async def send(self, payload: InvitationPayload) -> None:
        logger.info(
            "SMTP not configured; invitation for %s to %s not emailed (link: %s)",
            payload.to,
            payload.organization_name,
            payload.invite_url,
        )


class SmtpInvitationSender:
    """Sends invitation emails over SMTP (STARTTLS and login when configured)."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _build_message(self, payload: InvitationPayload) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = render_subject(payload)
        msg["From"] = self.settings.smtp_from
        msg["To"] = payload.to
        msg.set_content(render_body(payload))
        return msg

    def _send_blocking(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as smtp:
            if self.settings.smtp_use_tls:
                smtp.starttls()
            if self.settings.smtp_user:
                smtp.login(self.settings.smtp_user, self.settings.smtp_password)
            smtp.send_message(msg)

    async def send(self, payload: InvitationPayload) -> None:
        # smtplib blocks; keep it off the event loop
        await asyncio.to_thread(self._send_blocking, self._build_message(payload))
        logger.info("Invitation email sent to %s", payload.to)


def get_invitation_sender(settings: Settings | None = None) -> InvitationSender:
    """SMTP sender when SMTP is configured, otherwise the logging sender."""
    settings = settings or get_settings()
    if settings.smtp_configured:
        return SmtpInvitationSender(settings)
    return LoggingInvitationSender()


async def deliver_invitation(sender: InvitationSender, payload: InvitationPayload) -> None:
    """
    Send an invitation email without failing the caller.

    Runs after the invitation is committed. A delivery failure is logged and
    the invitation stays valid; the link can still be shared by hand.
    """
    try:
        await sender.send(payload)
    except Exception:
        logger.warning("Failed to send invitation email to %s", payload.to, exc_info=True)
