"""Service layer for tag operations."""
import logging
from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from sqlalchemy import Select, and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.principal import Principal
from models.bookmark import Bookmark
from models.tag import Tag, bookmark_tags, normalize_tag_name
from schemas.tag import TagCount
from schemas.validators import validate_tag_names
from services.access_control import Action, require_scope_access
from services.exceptions import ConflictError, InputValidationError
from services.utils import escape_like

logger = logging.getLogger(__name__)

MAX_TAG_LIMIT = 100


class TagOutcome(StrEnum):
    """Whether a tag upsert inserted a row or found an existing one."""

    CREATED = "created"
    FOUND = "found"


@dataclass(frozen=True)
class TagResolution:
    """Result of resolving one tag name for a user."""

    tag: Tag
    outcome: TagOutcome


async def _find_tags(db: AsyncSession, user_id: UUID, keys: list[str]) -> dict[str, Tag]:
    result = await db.execute(
        select(Tag).where(
            Tag.user_id == user_id,
            Tag.normalized_name.in_(keys),
        ),
    )
    return {tag.normalized_name: tag for tag in result.scalars()}


async def _create_or_find_tag(db: AsyncSession, user_id: UUID, name: str) -> TagResolution:
    """
    Insert a tag, or return the row a concurrent request inserted first.

    The insert runs in a SAVEPOINT so a unique violation only rolls back this
    one statement, never the caller's surrounding work.
    """
    key = normalize_tag_name(name)
    tag = Tag(user_id=user_id, name=name, normalized_name=key)
    try:
        async with db.begin_nested():
            db.add(tag)
            await db.flush()
        return TagResolution(tag, TagOutcome.CREATED)
    except IntegrityError:
        logger.debug("Tag '%s' created concurrently for user %s; re-fetching", key, user_id)

    existing = (await _find_tags(db, user_id, [key])).get(key)
    if existing is None:
        raise ConflictError(f"Tag '{name}' could not be created; please retry")
    return TagResolution(existing, TagOutcome.FOUND)


async def resolve_tags(
    db: AsyncSession,
    user_id: UUID,
    tag_names: list[str],
) -> list[TagResolution]:
    """
    Get existing tags or create new ones, matching names case-insensitively.

    "JavaScript" and "javascript" resolve to the same tag; the stored display
    name keeps the casing the tag was first created with.

    Args:
        db: Database session.
        user_id: User ID to scope tags.
        tag_names: Tag names to resolve.

    Returns:
        One TagResolution per distinct name, in input order.

    Raises:
        InputValidationError: If a name is invalid or there are too many tags.
        ConflictError: If a racing insert could not be reconciled.
    """
    try:
        names = validate_tag_names(tag_names)
    except ValueError as e:
        raise InputValidationError(str(e)) from e
    if not names:
        return []

    existing = await _find_tags(db, user_id, [normalize_tag_name(n) for n in names])

    resolutions = []
    for name in names:
        tag = existing.get(normalize_tag_name(name))
        if tag is not None:
            resolutions.append(TagResolution(tag, TagOutcome.FOUND))
        else:
            resolutions.append(await _create_or_find_tag(db, user_id, name))
    return resolutions


async def get_or_create_tags(
    db: AsyncSession,
    user_id: UUID,
    tag_names: list[str],
) -> list[Tag]:
    """Resolve tag names to Tag rows (see resolve_tags)."""
    return [r.tag for r in await resolve_tags(db, user_id, tag_names)]


def _tag_counts_query(user_id: UUID, workspace_id: UUID | None) -> Select:
    """
    Tags of a user with a count of their non-archived bookmarks.

    When `workspace_id` is given only bookmarks in that workspace are counted.
    LEFT JOINs keep tags with zero matching bookmarks (COUNT ignores NULLs).
    """
    bookmark_conditions = [
        bookmark_tags.c.bookmark_id == Bookmark.id,
        Bookmark.is_archived.is_(False),
    ]
    if workspace_id is not None:
        bookmark_conditions.append(Bookmark.workspace_id == workspace_id)

    return (
        select(
            Tag.id,
            Tag.name,
            Tag.color,
            func.count(Bookmark.id).label("bookmark_count"),
        )
        .outerjoin(bookmark_tags, Tag.id == bookmark_tags.c.tag_id)
        .outerjoin(Bookmark, and_(*bookmark_conditions))
        .where(Tag.user_id == user_id)
        .group_by(Tag.id, Tag.name, Tag.color)
    )


async def get_user_tags(
    db: AsyncSession,
    principal: Principal,
    workspace_id: UUID | None = None,
    query: str | None = None,
    limit: int = 20,
) -> list[TagCount]:
    """
    Get the principal's tags for autocomplete.

    Args:
        db: Database session.
        principal: The authenticated user; only their own tags are returned.
        workspace_id: If given, counts only bookmarks in this workspace (the
            principal must be able to read it).
        query: Case-insensitive substring filter on the tag name.
        limit: Maximum number of tags (capped at 100).

    Returns:
        TagCount list ordered alphabetically (case-insensitive).
    """
    await require_scope_access(db, principal, Action.READ, workspace_id)
    limit = max(1, min(limit, MAX_TAG_LIMIT))

    stmt = _tag_counts_query(principal.id, workspace_id)
    if query:
        pattern = f"%{escape_like(normalize_tag_name(query))}%"
        stmt = stmt.where(Tag.normalized_name.like(pattern, escape="\\"))
    stmt = stmt.order_by(Tag.normalized_name.asc()).limit(limit)

    result = await db.execute(stmt)
    return [
        TagCount(id=row.id, name=row.name, color=row.color, bookmark_count=row.bookmark_count)
        for row in result
    ]


async def get_popular_tags(
    db: AsyncSession,
    principal: Principal,
    workspace_id: UUID | None = None,
    limit: int = 10,
) -> list[TagCount]:
    """
    Get the principal's most used tags for suggestions.

    Only tags with at least one matching bookmark are returned, ordered by
    count desc, then name asc.
    """
    await require_scope_access(db, principal, Action.READ, workspace_id)
    limit = max(1, min(limit, MAX_TAG_LIMIT))

    stmt = _tag_counts_query(principal.id, workspace_id)
    count = func.count(Bookmark.id)
    stmt = (
        stmt.having(count > 0)
        .order_by(count.desc(), Tag.normalized_name.asc())
        .limit(limit)
    )

    result = await db.execute(stmt)
    return [
        TagCount(id=row.id, name=row.name, color=row.color, bookmark_count=row.bookmark_count)
        for row in result
    ]
