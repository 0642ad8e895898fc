"""Bookmark CRUD endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_principal
from core.principal import Principal
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkFilter,
    BookmarkListParams,
    BookmarkListResponse,
    BookmarkResponse,
    BookmarkUpdate,
)
from services import bookmark_service

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.post("/", response_model=BookmarkResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Create a new bookmark."""
    bookmark = await bookmark_service.create_bookmark(db, principal, data)
    return BookmarkResponse.model_validate(bookmark)


@router.get("/", response_model=BookmarkListResponse)
async def list_bookmarks(
    workspace_id: UUID | None = Query(default=None, description="Workspace to list; omit for personal bookmarks"),  # noqa: E501
    folder_id: UUID | None = Query(default=None, description="Only bookmarks in this folder"),
    is_private: bool | None = Query(default=None, description="Filter by privacy flag"),
    filter: BookmarkFilter | None = Query(default=None, description="'recent', 'favorites' or 'shared'"),  # noqa: A002, E501
    include_archived: bool = Query(default=False, description="Include archived bookmarks"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int | None = Query(default=None, ge=1, description="Page size (default 50, max 100)"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """
    List bookmarks visible to the current user.

    - **workspace_id**: Workspace listing shows shared bookmarks plus your own private ones
    - **filter**: 'recent' (newest first), 'favorites', or 'shared' (never private)
    - **include_archived**: Archived bookmarks are hidden by default
    """
    params = BookmarkListParams(
        workspace_id=workspace_id,
        folder_id=folder_id,
        is_private=is_private,
        filter=filter,
        include_archived=include_archived,
        limit=limit,
        offset=offset,
    )
    page = await bookmark_service.get_user_bookmarks(db, principal, params)
    return BookmarkListResponse(
        items=[BookmarkResponse.model_validate(b) for b in page.items],
        offset=page.offset,
        limit=page.limit,
        has_more=page.has_more,
    )


@router.get("/{bookmark_id}", response_model=BookmarkResponse)
async def get_bookmark(
    bookmark_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Get a single bookmark by ID."""
    bookmark = await bookmark_service.get_bookmark(db, principal, bookmark_id)
    return BookmarkResponse.model_validate(bookmark)


@router.patch("/{bookmark_id}", response_model=BookmarkResponse)
async def update_bookmark(
    bookmark_id: UUID,
    data: BookmarkUpdate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Update a bookmark."""
    bookmark = await bookmark_service.update_bookmark(db, principal, bookmark_id, data)
    return BookmarkResponse.model_validate(bookmark)


@router.post("/{bookmark_id}/archive", response_model=BookmarkResponse)
async def archive_bookmark(
    bookmark_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Archive a bookmark."""
    bookmark = await bookmark_service.set_archived(db, principal, bookmark_id, archived=True)
    return BookmarkResponse.model_validate(bookmark)


@router.post("/{bookmark_id}/unarchive", response_model=BookmarkResponse)
async def unarchive_bookmark(
    bookmark_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Restore an archived bookmark to the active listing."""
    bookmark = await bookmark_service.set_archived(db, principal, bookmark_id, archived=False)
    return BookmarkResponse.model_validate(bookmark)


@router.delete("/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Permanently delete a bookmark."""
    await bookmark_service.delete_bookmark(db, principal, bookmark_id)
