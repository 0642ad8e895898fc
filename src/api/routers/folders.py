"""Folder endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_principal
from core.principal import Principal
from schemas.folder import (
    AllFoldersResponse,
    FolderCreate,
    FolderResponse,
    FolderUpdate,
    FolderWithCounts,
)
from services import folder_service

router = APIRouter(prefix="/folders", tags=["folders"])


@router.post("/", response_model=FolderResponse, status_code=201)
async def create_folder(
    data: FolderCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> FolderResponse:
    """Create a folder in the personal space or in a workspace."""
    folder = await folder_service.create_folder(db, principal, data)
    return FolderResponse.model_validate(folder)


@router.get("/", response_model=list[FolderWithCounts])
async def list_folders(
    workspace_id: UUID | None = Query(default=None, description="Workspace to list; omit for personal folders"),  # noqa: E501
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> list[FolderWithCounts]:
    """
    List the folders of one scope with bookmark and subfolder counts.

    The default folder comes first, then folders by sort order and name.
    """
    return await folder_service.list_folders(db, principal, workspace_id)


@router.get("/all", response_model=AllFoldersResponse)
async def list_all_folders(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> AllFoldersResponse:
    """List personal folders and the folders of every workspace the user belongs to."""
    return await folder_service.list_all_folders(db, principal)


@router.get("/default", response_model=FolderResponse)
async def get_default_folder(
    workspace_id: UUID | None = None,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> FolderResponse:
    """Get the scope's default folder, creating it on first access."""
    folder = await folder_service.get_or_create_default_folder(db, principal, workspace_id)
    return FolderResponse.model_validate(folder)


@router.get("/{folder_id}", response_model=FolderResponse)
async def get_folder(
    folder_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> FolderResponse:
    """Get a single folder."""
    folder = await folder_service.get_folder(db, principal, folder_id)
    return FolderResponse.model_validate(folder)


@router.patch("/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: UUID,
    data: FolderUpdate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> FolderResponse:
    """Rename, restyle or move a folder within its scope."""
    folder = await folder_service.update_folder(db, principal, folder_id, data)
    return FolderResponse.model_validate(folder)


@router.delete("/{folder_id}", status_code=204)
async def delete_folder(
    folder_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Delete an empty folder. The default folder cannot be deleted."""
    await folder_service.delete_folder(db, principal, folder_id)
