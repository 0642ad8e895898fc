"""Tests for tag service layer functionality."""
from collections.abc import Awaitable, Callable
from unittest.mock import patch

import pytest
from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.principal import Principal
from models.bookmark import Bookmark
from models.tag import Tag, normalize_tag_name
from models.workspace import Workspace, WorkspaceMember, WorkspaceRole
from services.exceptions import ForbiddenError, InputValidationError
from services.tag_service import (
    TagOutcome,
    get_or_create_tags,
    get_popular_tags,
    get_user_tags,
    resolve_tags,
)

AddMember = Callable[[Workspace, Principal, WorkspaceRole], Awaitable[WorkspaceMember]]


async def _tagged_bookmark(
    db: AsyncSession,
    owner: Principal,
    url: str,
    tags: list[str],
    workspace: Workspace | None = None,
    is_archived: bool = False,
) -> Bookmark:
    bookmark = Bookmark(
        user_id=owner.id,
        workspace_id=workspace.id if workspace else None,
        url=url,
        title=url,
        is_archived=is_archived,
    )
    bookmark.tag_objects = await get_or_create_tags(db, owner.id, tags)
    db.add(bookmark)
    await db.flush()
    return bookmark


# =============================================================================
# get_or_create_tags / resolve_tags
# =============================================================================


async def test__get_or_create_tags__creates_new_tags(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    tags = await get_or_create_tags(db_session, alice.id, ["python", "Web"])

    assert [t.name for t in tags] == ["python", "Web"]
    assert [t.normalized_name for t in tags] == ["python", "web"]
    for tag in tags:
        assert tag.user_id == alice.id
        assert tag.id is not None


async def test__resolve_tags__reports_created_then_found(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    first = await resolve_tags(db_session, alice.id, ["JavaScript"])
    second = await resolve_tags(db_session, alice.id, ["javascript"])

    assert first[0].outcome == TagOutcome.CREATED
    assert second[0].outcome == TagOutcome.FOUND
    assert second[0].tag.id == first[0].tag.id
    # Display casing comes from the first spelling
    assert second[0].tag.name == "JavaScript"


async def test__get_or_create_tags__dedupes_input_and_skips_empty(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    tags = await get_or_create_tags(db_session, alice.id, ["Go", " go ", "", "GO", "rust"])

    assert [t.name for t in tags] == ["Go", "rust"]


async def test__get_or_create_tags__per_user(
    db_session: AsyncSession,
    alice: Principal,
    bob: Principal,
) -> None:
    alices = await get_or_create_tags(db_session, alice.id, ["shared-name"])
    bobs = await get_or_create_tags(db_session, bob.id, ["shared-name"])

    assert alices[0].id != bobs[0].id


async def test__get_or_create_tags__too_many_rejected(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    with pytest.raises(InputValidationError, match="Too many tags"):
        await get_or_create_tags(db_session, alice.id, [f"t{i}" for i in range(21)])

    with pytest.raises(InputValidationError):
        await get_or_create_tags(db_session, alice.id, ["x" * 51])


async def test__get_or_create_tags__handles_race_condition(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    """
    A concurrent request inserts the tag between our lookup and our insert.

    The unique violation is confined to a savepoint and the existing row wins.
    """
    winner = Tag(user_id=alice.id, name="Python", normalized_name=normalize_tag_name("Python"))
    db_session.add(winner)
    await db_session.flush()

    original_execute = db_session.execute
    tag_selects = 0

    async def mock_execute_for_race(stmt: object, *args: object, **kwargs: object) -> object:
        nonlocal tag_selects
        stmt_str = str(stmt).lower()
        if stmt_str.startswith("select") and "from tags" in stmt_str:
            tag_selects += 1
            if tag_selects == 1:
                return await original_execute(select(Tag).where(false()))
        return await original_execute(stmt, *args, **kwargs)

    with patch.object(db_session, "execute", side_effect=mock_execute_for_race):
        resolutions = await resolve_tags(db_session, alice.id, ["python"])

    assert resolutions[0].outcome == TagOutcome.FOUND
    assert resolutions[0].tag.id == winner.id
    rows = (await db_session.execute(select(Tag).where(Tag.user_id == alice.id))).scalars().all()
    assert len(rows) == 1


# =============================================================================
# get_user_tags
# =============================================================================


async def test__get_user_tags__substring_match_is_case_insensitive(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    await get_or_create_tags(db_session, alice.id, ["JavaScript", "Rust", "java-tools"])

    tags = await get_user_tags(db_session, alice, query="java")

    assert [t.name for t in tags] == ["java-tools", "JavaScript"]


async def test__get_user_tags__like_wildcards_are_literal(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    await get_or_create_tags(db_session, alice.id, ["100%", "1000", "a_b", "ab"])

    assert [t.name for t in await get_user_tags(db_session, alice, query="%")] == ["100%"]
    assert [t.name for t in await get_user_tags(db_session, alice, query="_")] == ["a_b"]


async def test__get_user_tags__only_own_tags(
    db_session: AsyncSession,
    alice: Principal,
    bob: Principal,
) -> None:
    await get_or_create_tags(db_session, bob.id, ["secret"])

    assert await get_user_tags(db_session, alice) == []


async def test__get_user_tags__counts_non_archived_bookmarks(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    await _tagged_bookmark(db_session, alice, "https://1.example/", ["python"])
    await _tagged_bookmark(db_session, alice, "https://2.example/", ["python", "web"])
    await _tagged_bookmark(db_session, alice, "https://3.example/", ["web"], is_archived=True)
    await get_or_create_tags(db_session, alice.id, ["unused"])

    counts = {t.name: t.bookmark_count for t in await get_user_tags(db_session, alice)}

    assert counts == {"python": 2, "unused": 0, "web": 1}


async def test__get_user_tags__workspace_restricts_counts(
    db_session: AsyncSession,
    alice: Principal,
    team_workspace: Workspace,
) -> None:
    await _tagged_bookmark(db_session, alice, "https://1.example/", ["python"])
    await _tagged_bookmark(db_session, alice, "https://2.example/", ["python"], workspace=team_workspace)

    counts = {
        t.name: t.bookmark_count
        for t in await get_user_tags(db_session, alice, workspace_id=team_workspace.id)
    }

    assert counts == {"python": 1}


async def test__get_user_tags__workspace_requires_membership(
    db_session: AsyncSession,
    mallory: Principal,
    team_workspace: Workspace,
) -> None:
    with pytest.raises(ForbiddenError):
        await get_user_tags(db_session, mallory, workspace_id=team_workspace.id)


async def test__get_user_tags__limit_is_capped(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    for start in range(0, 120, 20):
        await get_or_create_tags(db_session, alice.id, [f"tag{i:03d}" for i in range(start, start + 20)])

    assert len(await get_user_tags(db_session, alice, limit=5)) == 5
    assert len(await get_user_tags(db_session, alice, limit=500)) == 100


# =============================================================================
# get_popular_tags
# =============================================================================


async def test__get_popular_tags__most_used_first(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    await _tagged_bookmark(db_session, alice, "https://1.example/", ["b", "a"])
    await _tagged_bookmark(db_session, alice, "https://2.example/", ["b", "c"])
    await _tagged_bookmark(db_session, alice, "https://3.example/", ["b", "c"])
    await get_or_create_tags(db_session, alice.id, ["unused"])

    tags = await get_popular_tags(db_session, alice)

    assert [(t.name, t.bookmark_count) for t in tags] == [("b", 3), ("c", 2), ("a", 1)]
