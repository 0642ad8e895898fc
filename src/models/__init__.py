"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.user import User, UserRole
from models.organization import Organization
from models.workspace import Workspace, WorkspaceMember, WorkspaceRole
from models.folder import Folder
from models.tag import Tag, bookmark_tags  # Must be before bookmark due to import
from models.bookmark import Bookmark
from models.invitation import Invitation, InvitationStatus

__all__ = [
    "Base",
    "Bookmark",
    "Folder",
    "Invitation",
    "InvitationStatus",
    "Organization",
    "Tag",
    "TimestampMixin",
    "UUIDv7Mixin",
    "User",
    "UserRole",
    "Workspace",
    "WorkspaceMember",
    "WorkspaceRole",
    "bookmark_tags",
]
