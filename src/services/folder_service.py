"""
Service layer for the folder hierarchy.

Folders form one tree per scope (a user's personal space, or a workspace).
Every write validates scope, parent and cycles before touching the session, so
a rejected request leaves nothing behind.
"""
import logging
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.config import get_settings
from core.principal import Principal
from models.bookmark import Bookmark
from models.folder import Folder
from models.workspace import WorkspaceMember
from schemas.folder import AllFoldersResponse, FolderCreate, FolderUpdate, FolderWithCounts
from services.access_control import (
    Action,
    Allow,
    authorize,
    require_access,
    require_scope_access,
)
from services.exceptions import ConflictError, InputValidationError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_FOLDER_DESCRIPTION = "Default folder for unsorted bookmarks"


def _scope_conditions(user_id: UUID, workspace_id: UUID | None) -> list:
    """WHERE clauses selecting the folders of one scope."""
    if workspace_id is not None:
        return [Folder.workspace_id == workspace_id]
    return [Folder.workspace_id.is_(None), Folder.user_id == user_id]


async def get_folder(
    db: AsyncSession,
    principal: Principal,
    folder_id: UUID,
    action: Action = Action.READ,
) -> Folder:
    """
    Load a folder the principal may perform `action` on.

    Raises:
        NotFoundError: If the folder is missing or belongs to another tenant.
        ForbiddenError: If the principal's workspace role is too low for `action`.
    """
    folder = await db.get(Folder, folder_id)
    await require_access(db, principal, action, folder, "Folder", folder_id)
    return folder


async def get_ancestor_ids(db: AsyncSession, folder: Folder, max_depth: int) -> list[UUID]:
    """
    Walk parent links upward from `folder`, nearest first.

    Raises:
        InputValidationError: If the chain is longer than `max_depth` or loops.
    """
    ancestors: list[UUID] = []
    current_id = folder.parent_id
    while current_id is not None:
        if current_id in ancestors or current_id == folder.id or len(ancestors) >= max_depth:
            raise InputValidationError("Folder hierarchy is too deep or contains a cycle")
        ancestors.append(current_id)
        result = await db.execute(select(Folder.parent_id).where(Folder.id == current_id))
        current_id = result.scalar_one_or_none()
    return ancestors


async def get_subtree_height(db: AsyncSession, folder_id: UUID, max_depth: int) -> int:
    """Levels of subfolders below `folder_id` (0 for a leaf), counting at most `max_depth`."""
    height = 0
    level = [folder_id]
    while height < max_depth:
        result = await db.execute(select(Folder.id).where(Folder.parent_id.in_(level)))
        level = list(result.scalars())
        if not level:
            break
        height += 1
    return height


async def validate_parent(
    db: AsyncSession,
    principal: Principal,
    parent_id: UUID,
    workspace_id: UUID | None,
    folder_id: UUID | None = None,
) -> Folder:
    """
    Check that `parent_id` may become the parent of a folder in the given scope.

    Args:
        db: Database session.
        principal: The authenticated user.
        parent_id: Proposed parent folder.
        workspace_id: Scope of the child folder (None for personal).
        folder_id: The child itself when re-parenting an existing folder, so a
            folder cannot be moved under itself or one of its descendants.

    Returns:
        The parent folder.

    Raises:
        NotFoundError: If the parent is missing or not visible to the principal.
        InputValidationError: If the parent is in another scope, the move would
            create a cycle, or the tree would get too deep.
    """
    parent = await db.get(Folder, parent_id)
    decision = await authorize(db, principal, Action.READ, parent)
    if not isinstance(decision, Allow):
        raise NotFoundError("Parent folder", parent_id)

    if not parent.same_scope_as(workspace_id, principal.id):
        raise InputValidationError("Parent folder belongs to a different scope")

    max_depth = get_settings().max_folder_depth
    chain = [parent.id, *await get_ancestor_ids(db, parent, max_depth)]
    height = 0
    if folder_id is not None:
        if folder_id in chain:
            raise InputValidationError("A folder cannot be moved inside itself or its descendants")
        # The moved folder brings its whole subtree along
        height = await get_subtree_height(db, folder_id, max_depth)
    if len(chain) + height >= max_depth:
        raise InputValidationError("Folder hierarchy is too deep")
    return parent


async def _check_sibling_name(
    db: AsyncSession,
    principal: Principal,
    workspace_id: UUID | None,
    parent_id: UUID | None,
    name: str,
    exclude_id: UUID | None = None,
) -> None:
    """Raise ConflictError if a sibling already uses `name` (case-insensitive)."""
    stmt = select(Folder.id).where(
        *_scope_conditions(principal.id, workspace_id),
        Folder.parent_id.is_(None) if parent_id is None else Folder.parent_id == parent_id,
        func.lower(Folder.name) == name.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(Folder.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    if result.first() is not None:
        raise ConflictError("A folder with this name already exists in this location")


async def create_folder(
    db: AsyncSession,
    principal: Principal,
    data: FolderCreate,
) -> Folder:
    """
    Create a folder in the principal's personal space or in a workspace.

    Args:
        db: Database session.
        principal: The authenticated user.
        data: Folder creation data.

    Returns:
        The created folder.

    Raises:
        NotFoundError: If the workspace or parent folder is missing.
        ForbiddenError: If the principal cannot write to the workspace.
        InputValidationError: If the parent is in another scope or too deep.
        ConflictError: If a sibling folder already has this name.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    await require_scope_access(db, principal, Action.WRITE, data.workspace_id)
    if data.parent_id is not None:
        await validate_parent(db, principal, data.parent_id, data.workspace_id)
    await _check_sibling_name(db, principal, data.workspace_id, data.parent_id, data.name)

    folder = Folder(
        user_id=principal.id if data.workspace_id is None else None,
        workspace_id=data.workspace_id,
        created_by_id=principal.id,
        parent_id=data.parent_id,
        name=data.name,
        description=data.description,
        color=data.color,
        icon=data.icon,
        is_default=False,
    )
    try:
        async with db.begin_nested():
            db.add(folder)
            await db.flush()
    except IntegrityError as e:
        raise ConflictError("Folder could not be created; please retry") from e
    return folder


async def _find_default_folder(
    db: AsyncSession,
    user_id: UUID,
    workspace_id: UUID | None,
) -> Folder | None:
    result = await db.execute(
        select(Folder).where(
            *_scope_conditions(user_id, workspace_id),
            Folder.is_default.is_(True),
        ),
    )
    return result.scalar_one_or_none()


async def get_or_create_default_folder(
    db: AsyncSession,
    principal: Principal,
    workspace_id: UUID | None = None,
) -> Folder:
    """
    Return the scope's default folder, creating it on first access.

    Concurrent first calls converge on one row: the partial unique index on
    (scope, is_default) rejects the losing insert, which is rolled back to its
    SAVEPOINT and answered by re-reading the winner's row.

    Any member who can read the scope may look the folder up; creating it is
    a write and needs the member role.

    Raises:
        NotFoundError: If the workspace does not exist.
        ForbiddenError: If the principal is not a member of the workspace, or is
            a viewer and the folder does not exist yet.
        ConflictError: If the insert failed and no default folder can be found.
    """
    await require_scope_access(db, principal, Action.READ, workspace_id)

    existing = await _find_default_folder(db, principal.id, workspace_id)
    if existing is not None:
        return existing

    await require_scope_access(db, principal, Action.WRITE, workspace_id)
    folder = Folder(
        user_id=principal.id if workspace_id is None else None,
        workspace_id=workspace_id,
        created_by_id=principal.id,
        name=get_settings().default_folder_name,
        description=DEFAULT_FOLDER_DESCRIPTION,
        is_default=True,
    )
    try:
        async with db.begin_nested():
            db.add(folder)
            await db.flush()
        logger.info(
            "Created default folder %s for scope user=%s workspace=%s",
            folder.id, principal.id, workspace_id,
        )
        return folder
    except IntegrityError:
        logger.info(
            "Default folder for user=%s workspace=%s created concurrently; re-fetching",
            principal.id, workspace_id,
        )

    existing = await _find_default_folder(db, principal.id, workspace_id)
    if existing is None:
        raise ConflictError("Default folder could not be created; please retry")
    return existing


async def _folders_with_counts(
    db: AsyncSession,
    principal: Principal,
    workspace_id: UUID | None,
) -> list[FolderWithCounts]:
    """All folders of one scope with live counts, default first then by name."""
    child = aliased(Folder)
    bookmark_count = (
        select(func.count(Bookmark.id))
        .where(
            Bookmark.folder_id == Folder.id,
            Bookmark.is_archived.is_(False),
            # Other members' private bookmarks are invisible, so they are not counted
            or_(Bookmark.is_private.is_(False), Bookmark.user_id == principal.id),
        )
        .correlate(Folder)
        .scalar_subquery()
    )
    child_count = (
        select(func.count(child.id))
        .where(child.parent_id == Folder.id)
        .correlate(Folder)
        .scalar_subquery()
    )

    result = await db.execute(
        select(
            Folder,
            bookmark_count.label("bookmark_count"),
            child_count.label("child_count"),
        )
        .where(*_scope_conditions(principal.id, workspace_id))
        .order_by(
            Folder.is_default.desc(),
            Folder.sort_order.asc(),
            func.lower(Folder.name).asc(),
        ),
    )
    folders = []
    for folder, bookmarks, children in result:
        item = FolderWithCounts.model_validate(folder)
        item.bookmark_count = bookmarks
        item.child_count = children
        folders.append(item)
    return folders


async def list_folders(
    db: AsyncSession,
    principal: Principal,
    workspace_id: UUID | None = None,
) -> list[FolderWithCounts]:
    """
    List the folders of one scope.

    Args:
        db: Database session.
        principal: The authenticated user.
        workspace_id: Workspace to list, or None for the personal space.

    Returns:
        Folders with bookmark and child counts; default folder first, then
        sort_order, then name.
    """
    await require_scope_access(db, principal, Action.READ, workspace_id)
    return await _folders_with_counts(db, principal, workspace_id)


async def list_all_folders(db: AsyncSession, principal: Principal) -> AllFoldersResponse:
    """List personal folders plus the folders of every workspace the principal belongs to."""
    memberships = await db.execute(
        select(WorkspaceMember.workspace_id)
        .where(WorkspaceMember.user_id == principal.id)
        .order_by(WorkspaceMember.created_at, WorkspaceMember.id),
    )
    workspaces = {}
    for workspace_id in memberships.scalars():
        workspaces[workspace_id] = await _folders_with_counts(db, principal, workspace_id)

    return AllFoldersResponse(
        personal=await _folders_with_counts(db, principal, None),
        workspaces=workspaces,
    )


async def update_folder(
    db: AsyncSession,
    principal: Principal,
    folder_id: UUID,
    data: FolderUpdate,
) -> Folder:
    """
    Update a folder's attributes or move it under another parent.

    The folder stays in its scope; a new parent must be in the same scope and
    must not be the folder itself or one of its descendants.

    Raises:
        NotFoundError: If the folder or new parent is missing or not visible.
        ForbiddenError: If the principal's role cannot modify the folder.
        InputValidationError: For cross-scope or cyclic moves, or an empty name.
        ConflictError: If a sibling at the destination already uses the name.
    """
    folder = await get_folder(db, principal, folder_id, Action.WRITE)
    fields = data.model_fields_set

    if "name" in fields and data.name is None:
        raise InputValidationError("Folder name cannot be empty")

    new_parent_id = data.parent_id if "parent_id" in fields else folder.parent_id
    if "parent_id" in fields and new_parent_id is not None and new_parent_id != folder.parent_id:
        await validate_parent(db, principal, new_parent_id, folder.workspace_id, folder.id)

    new_name = data.name if data.name is not None else folder.name
    if new_name != folder.name or new_parent_id != folder.parent_id:
        await _check_sibling_name(
            db, principal, folder.workspace_id, new_parent_id, new_name, exclude_id=folder.id,
        )

    folder.name = new_name
    folder.parent_id = new_parent_id
    for field in ("description", "color", "icon"):
        if field in fields:
            setattr(folder, field, getattr(data, field))
    if "sort_order" in fields and data.sort_order is not None:
        folder.sort_order = data.sort_order

    await db.flush()
    return folder


async def delete_folder(db: AsyncSession, principal: Principal, folder_id: UUID) -> None:
    """
    Delete an empty, non-default folder.

    Raises:
        NotFoundError: If the folder is missing or not visible.
        ForbiddenError: If the principal's role cannot delete it.
        InputValidationError: If it is the default folder or still has
            bookmarks (archived included) or subfolders.
    """
    folder = await get_folder(db, principal, folder_id, Action.DELETE)
    if folder.is_default:
        raise InputValidationError("Cannot delete the default folder")

    has_content = await db.execute(
        select(
            select(Bookmark.id).where(Bookmark.folder_id == folder.id).exists(),
            select(Folder.id).where(Folder.parent_id == folder.id).exists(),
        ),
    )
    has_bookmarks, has_children = has_content.one()
    if has_bookmarks or has_children:
        raise InputValidationError("Cannot delete a folder that contains bookmarks or subfolders")

    await db.delete(folder)
    await db.flush()


async def ensure_folder_in_scope(
    db: AsyncSession,
    principal: Principal,
    folder_id: UUID,
    workspace_id: UUID | None,
) -> Folder:
    """
    Resolve a folder for filing a bookmark into the given scope.

    Raises:
        NotFoundError: If the folder is missing or not visible.
        InputValidationError: If the folder belongs to a different scope.
    """
    folder = await get_folder(db, principal, folder_id, Action.READ)
    if not folder.same_scope_as(workspace_id, principal.id):
        raise InputValidationError("Folder belongs to a different scope than the bookmark")
    return folder


__all__ = [
    "DEFAULT_FOLDER_DESCRIPTION",
    "create_folder",
    "delete_folder",
    "ensure_folder_in_scope",
    "get_ancestor_ids",
    "get_folder",
    "get_or_create_default_folder",
    "get_subtree_height",
    "list_all_folders",
    "list_folders",
    "update_folder",
    "validate_parent",
]
