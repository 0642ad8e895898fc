"""Tag endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_principal
from core.principal import Principal
from schemas.tag import TagListResponse
from services.tag_service import MAX_TAG_LIMIT, get_popular_tags, get_user_tags

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("/", response_model=TagListResponse)
async def list_tags(
    q: str | None = Query(default=None, description="Case-insensitive substring filter"),
    workspace_id: UUID | None = Query(default=None, description="Count only bookmarks in this workspace"),  # noqa: E501
    limit: int = Query(default=20, ge=1, le=MAX_TAG_LIMIT),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> TagListResponse:
    """
    Get the current user's tags for autocomplete, alphabetically.

    `bookmark_count` counts non-archived bookmarks (within `workspace_id` when given).
    """
    tags = await get_user_tags(db, principal, workspace_id=workspace_id, query=q, limit=limit)
    return TagListResponse(tags=tags)


@router.get("/popular", response_model=TagListResponse)
async def list_popular_tags(
    workspace_id: UUID | None = None,
    limit: int = Query(default=10, ge=1, le=MAX_TAG_LIMIT),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> TagListResponse:
    """Get the current user's most used tags."""
    tags = await get_popular_tags(db, principal, workspace_id=workspace_id, limit=limit)
    return TagListResponse(tags=tags)
