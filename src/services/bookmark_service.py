"""Service layer for bookmark CRUD operations."""
import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import Select, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.config import get_settings
from core.principal import Principal
from models.bookmark import Bookmark
from models.workspace import WorkspaceMember
from schemas.bookmark import BookmarkCreate, BookmarkListParams, BookmarkUpdate
from services.access_control import Action, require_access, require_scope_access
from services.exceptions import ConflictError, InputValidationError
from services.folder_service import (
    ensure_folder_in_scope,
    get_folder,
    get_or_create_default_folder,
)
from services.tag_service import get_or_create_tags
from services.utils import clamp_limit

logger = logging.getLogger(__name__)


@dataclass
class BookmarkPage:
    """One page of a bookmark listing."""

    items: list[Bookmark]
    offset: int
    limit: int
    has_more: bool


async def _find_duplicate_url(
    db: AsyncSession,
    user_id: UUID,
    workspace_id: UUID | None,
    url: str,
) -> Bookmark | None:
    """Return the user's bookmark with this URL in the given scope, if any."""
    stmt = select(Bookmark).where(Bookmark.user_id == user_id, Bookmark.url == url)
    if workspace_id is None:
        stmt = stmt.where(Bookmark.workspace_id.is_(None))
    else:
        stmt = stmt.where(Bookmark.workspace_id == workspace_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none()


async def create_bookmark(
    db: AsyncSession,
    principal: Principal,
    data: BookmarkCreate,
) -> Bookmark:
    """
    Create a new bookmark in the principal's personal space or a workspace.

    Without `folder_id` the bookmark is filed into the scope's default folder,
    which is created on first use. Tags are owned by the principal and matched
    case-insensitively.

    Args:
        db: Database session.
        principal: The authenticated user.
        data: Bookmark creation data.

    Returns:
        The created bookmark with tags loaded.

    Raises:
        NotFoundError: If the workspace or folder is missing or not visible.
        ForbiddenError: If the principal cannot write to the workspace.
        InputValidationError: If the folder is in another scope or tags are invalid.
        ConflictError: If the URL is already saved in this scope.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    await require_scope_access(db, principal, Action.WRITE, data.workspace_id)

    if data.folder_id is not None:
        folder = await ensure_folder_in_scope(db, principal, data.folder_id, data.workspace_id)
    else:
        folder = await get_or_create_default_folder(db, principal, data.workspace_id)

    url_str = str(data.url)
    if await _find_duplicate_url(db, principal.id, data.workspace_id, url_str):
        raise ConflictError(f"A bookmark with URL '{url_str}' already exists")

    tag_objects = await get_or_create_tags(db, principal.id, data.tags)
    metadata = data.metadata
    bookmark = Bookmark(
        user_id=principal.id,
        workspace_id=data.workspace_id,
        folder_id=folder.id,
        url=url_str,
        title=data.title,
        description=data.description if data.description is not None else metadata.description,
        notes=data.notes,
        is_private=data.is_private,
        is_favorite=False,
        is_archived=False,
        favicon=metadata.favicon,
        image_url=metadata.image_url,
        site_name=metadata.site_name,
        author=metadata.author,
        published_at=metadata.published_at,
    )
    bookmark.tag_objects = tag_objects
    try:
        async with db.begin_nested():
            db.add(bookmark)
            await db.flush()
    except IntegrityError as e:
        # A concurrent request saved the same URL between the check and the insert
        raise ConflictError(f"A bookmark with URL '{url_str}' already exists") from e

    logger.info(
        "Created bookmark %s for user=%s workspace=%s",
        bookmark.id, principal.id, data.workspace_id,
    )
    return bookmark


async def get_bookmark(
    db: AsyncSession,
    principal: Principal,
    bookmark_id: UUID,
    action: Action = Action.READ,
) -> Bookmark:
    """
    Get a bookmark the principal may perform `action` on, with tags loaded.

    Raises:
        NotFoundError: If the bookmark is missing, belongs to another tenant, or
            is another member's private workspace bookmark.
        ForbiddenError: If the workspace role is too low for `action`.
    """
    result = await db.execute(
        select(Bookmark)
        .options(selectinload(Bookmark.tag_objects))
        .where(Bookmark.id == bookmark_id),
    )
    bookmark = result.scalar_one_or_none()
    await require_access(db, principal, action, bookmark, "Bookmark", bookmark_id)
    return bookmark


async def _listing_query(
    db: AsyncSession,
    principal: Principal,
    params: BookmarkListParams,
) -> Select:
    """Base SELECT for a listing, restricted to what the principal may see."""
    stmt = select(Bookmark).options(selectinload(Bookmark.tag_objects))

    if params.filter == "shared":
        # Shared = visible to other members; never private, never personal
        if params.workspace_id is not None:
            await require_scope_access(db, principal, Action.READ, params.workspace_id)
            stmt = stmt.where(Bookmark.workspace_id == params.workspace_id)
        else:
            member_of = select(WorkspaceMember.workspace_id).where(
                WorkspaceMember.user_id == principal.id,
            )
            stmt = stmt.where(Bookmark.workspace_id.in_(member_of))
        return stmt.where(Bookmark.is_private.is_(False))

    if params.workspace_id is None:
        return stmt.where(
            Bookmark.user_id == principal.id,
            Bookmark.workspace_id.is_(None),
        )

    await require_scope_access(db, principal, Action.READ, params.workspace_id)
    return stmt.where(
        Bookmark.workspace_id == params.workspace_id,
        or_(Bookmark.is_private.is_(False), Bookmark.user_id == principal.id),
    )


async def get_user_bookmarks(
    db: AsyncSession,
    principal: Principal,
    params: BookmarkListParams,
) -> BookmarkPage:
    """
    List bookmarks for the principal with filtering and pagination.

    Args:
        db: Database session.
        principal: The authenticated user.
        params:
            Listing filters:
            - workspace_id: None lists the personal space; otherwise the
              workspace's non-private bookmarks plus the principal's own
              private ones (requires read access).
            - folder_id: Only bookmarks in this folder (same scope).
            - is_private: Only bookmarks with this privacy flag.
            - filter: "recent" (newest first), "favorites" (favorites only) or
              "shared" (non-private workspace bookmarks only).
            - include_archived: Archived bookmarks are excluded unless True.
            - limit / offset: Page window; limit defaults to 50, capped at 100.

    Returns:
        BookmarkPage with the effective limit and whether more rows follow.
    """
    settings = get_settings()
    limit = clamp_limit(params.limit, settings.bookmarks_default_limit, settings.bookmarks_max_limit)

    stmt = await _listing_query(db, principal, params)

    if params.folder_id is not None:
        if params.filter == "shared" and params.workspace_id is None:
            # Cross-workspace listing: the folder only has to be visible
            folder = await get_folder(db, principal, params.folder_id)
        else:
            folder = await ensure_folder_in_scope(
                db, principal, params.folder_id, params.workspace_id,
            )
        stmt = stmt.where(Bookmark.folder_id == folder.id)
    if params.is_private is not None:
        stmt = stmt.where(Bookmark.is_private.is_(params.is_private))
    if params.filter == "favorites":
        stmt = stmt.where(Bookmark.is_favorite.is_(True))
    if not params.include_archived:
        stmt = stmt.where(Bookmark.is_archived.is_(False))

    # Every filter lists newest first; id breaks ties between equal timestamps
    stmt = (
        stmt.order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        .offset(params.offset)
        .limit(limit + 1)
    )
    result = await db.execute(stmt)
    bookmarks = list(result.scalars().all())

    return BookmarkPage(
        items=bookmarks[:limit],
        offset=params.offset,
        limit=limit,
        has_more=len(bookmarks) > limit,
    )


async def update_bookmark(
    db: AsyncSession,
    principal: Principal,
    bookmark_id: UUID,
    data: BookmarkUpdate,
) -> Bookmark:
    """
    Update a bookmark. Only fields present in the request are applied.

    A folder move must stay within the bookmark's scope; `folder_id` null
    removes the bookmark from its folder.

    Raises:
        NotFoundError: If the bookmark or folder is missing or not visible.
        ForbiddenError: If the principal's role cannot modify the bookmark.
        InputValidationError: For an empty title or a cross-scope folder.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    bookmark = await get_bookmark(db, principal, bookmark_id, Action.WRITE)
    update_data = data.model_dump(exclude_unset=True)

    if "title" in update_data and update_data["title"] is None:
        raise InputValidationError("Title cannot be empty")

    if "folder_id" in update_data and update_data["folder_id"] is not None:
        await ensure_folder_in_scope(
            db, principal, update_data["folder_id"], bookmark.workspace_id,
        )

    # Tags go through the junction table and stay owned by the bookmark's creator
    new_tags = update_data.pop("tags", None)
    if new_tags is not None:
        bookmark.tag_objects = await get_or_create_tags(db, bookmark.user_id, new_tags)

    for field, value in update_data.items():
        if field in ("is_private", "is_favorite") and value is None:
            continue
        setattr(bookmark, field, value)

    await db.flush()
    return bookmark


async def set_archived(
    db: AsyncSession,
    principal: Principal,
    bookmark_id: UUID,
    archived: bool,
) -> Bookmark:
    """
    Archive or unarchive a bookmark.

    Archived bookmarks are hidden from listings by default and are not
    counted in folder or tag counts.
    """
    bookmark = await get_bookmark(db, principal, bookmark_id, Action.WRITE)
    bookmark.is_archived = archived
    await db.flush()
    return bookmark


async def delete_bookmark(db: AsyncSession, principal: Principal, bookmark_id: UUID) -> None:
    """
    Permanently delete a bookmark.

    Members may delete their own workspace bookmarks; deleting another
    member's bookmark requires the admin role.
    """
    bookmark = await get_bookmark(db, principal, bookmark_id, Action.DELETE)
    await db.delete(bookmark)
    await db.flush()
    logger.info("Deleted bookmark %s (user=%s)", bookmark_id, principal.id)
