"""FastAPI dependencies for injection."""
from core.auth import get_current_principal
from core.config import get_settings
from db.session import get_async_session
from services.notification_service import InvitationSender, get_invitation_sender


def get_sender() -> InvitationSender:
    """Invitation sender for the current settings; overridden in tests."""
    return get_invitation_sender(get_settings())


__all__ = [
    "get_async_session",
    "get_current_principal",
    "get_sender",
    "get_settings",
]
