"""Tests for organization and workspace service functions."""
from collections.abc import Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from core.principal import Principal
from models.workspace import Workspace, WorkspaceMember, WorkspaceRole
from schemas.workspace import OrganizationCreate, WorkspaceCreate
from services.access_control import get_role
from services.exceptions import ForbiddenError, NotFoundError
from services.workspace_service import (
    create_organization_with_workspace,
    create_workspace,
    get_organization,
    get_user_workspaces,
    get_workspace,
)

AddMember = Callable[[Workspace, Principal, WorkspaceRole], Awaitable[WorkspaceMember]]


async def test__create_organization_with_workspace__owner_membership(
    db_session: AsyncSession,
    alice: Principal,
) -> None:
    organization, workspace = await create_organization_with_workspace(
        db_session,
        alice,
        OrganizationCreate(organization_name="Acme Corp", workspace_name="Engineering"),
    )

    assert organization.owner_id == alice.id
    assert organization.slug == "acme-corp"
    assert workspace.organization_id == organization.id
    assert workspace.slug == "engineering"
    assert await get_role(db_session, alice.id, workspace.id) == WorkspaceRole.OWNER


async def test__create_organization_with_workspace__slugs_are_deduplicated(
    db_session: AsyncSession,
    alice: Principal,
    bob: Principal,
) -> None:
    first, _ = await create_organization_with_workspace(
        db_session, alice, OrganizationCreate(organization_name="Acme", workspace_name="Main"),
    )
    second, _ = await create_organization_with_workspace(
        db_session, bob, OrganizationCreate(organization_name="ACME!", workspace_name="Main"),
    )
    third, _ = await create_organization_with_workspace(
        db_session, bob, OrganizationCreate(organization_name="acme", workspace_name="Main"),
    )

    assert [first.slug, second.slug, third.slug] == ["acme", "acme-2", "acme-3"]


async def test__create_workspace__by_owner(
    db_session: AsyncSession,
    alice: Principal,
    team_workspace: Workspace,
) -> None:
    workspace = await create_workspace(
        db_session, alice, team_workspace.organization_id, WorkspaceCreate(name="Team"),
    )

    assert workspace.id != team_workspace.id
    assert workspace.slug == "team-2"
    assert await get_role(db_session, alice.id, workspace.id) == WorkspaceRole.OWNER


async def test__create_workspace__by_admin_member(
    db_session: AsyncSession,
    bob: Principal,
    team_workspace: Workspace,
    add_member: AddMember,
) -> None:
    await add_member(team_workspace, bob, WorkspaceRole.ADMIN)

    workspace = await create_workspace(
        db_session, bob, team_workspace.organization_id, WorkspaceCreate(name="Bob's"),
    )

    assert await get_role(db_session, bob.id, workspace.id) == WorkspaceRole.OWNER


async def test__create_workspace__member_is_forbidden_stranger_not_found(
    db_session: AsyncSession,
    bob: Principal,
    mallory: Principal,
    team_workspace: Workspace,
    add_member: AddMember,
) -> None:
    await add_member(team_workspace, bob, WorkspaceRole.MEMBER)

    with pytest.raises(ForbiddenError):
        await create_workspace(
            db_session, bob, team_workspace.organization_id, WorkspaceCreate(name="X"),
        )
    with pytest.raises(NotFoundError):
        await create_workspace(
            db_session, mallory, team_workspace.organization_id, WorkspaceCreate(name="X"),
        )


async def test__get_organization__visible_to_members_only(
    db_session: AsyncSession,
    bob: Principal,
    mallory: Principal,
    team_workspace: Workspace,
    add_member: AddMember,
) -> None:
    await add_member(team_workspace, bob, WorkspaceRole.VIEWER)

    organization = await get_organization(db_session, bob, team_workspace.organization_id)
    assert organization.name == "Acme"

    with pytest.raises(NotFoundError):
        await get_organization(db_session, mallory, team_workspace.organization_id)


async def test__get_user_workspaces__roles_and_member_counts(
    db_session: AsyncSession,
    alice: Principal,
    bob: Principal,
    team_workspace: Workspace,
    add_member: AddMember,
) -> None:
    await add_member(team_workspace, bob, WorkspaceRole.VIEWER)
    _, own = await create_organization_with_workspace(
        db_session, bob, OrganizationCreate(organization_name="Bob Co", workspace_name="Home"),
    )

    workspaces = {w.id: w for w in await get_user_workspaces(db_session, bob)}

    assert set(workspaces) == {team_workspace.id, own.id}
    assert workspaces[team_workspace.id].role == "viewer"
    assert workspaces[team_workspace.id].member_count == 2
    assert workspaces[own.id].role == "owner"
    assert workspaces[own.id].member_count == 1

    assert [w.id for w in await get_user_workspaces(db_session, alice)] == [team_workspace.id]


async def test__get_workspace__member_and_non_member(
    db_session: AsyncSession,
    bob: Principal,
    mallory: Principal,
    team_workspace: Workspace,
    add_member: AddMember,
) -> None:
    await add_member(team_workspace, bob, WorkspaceRole.MEMBER)

    workspace = await get_workspace(db_session, bob, team_workspace.id)
    assert workspace.name == "Team"
    assert workspace.role == "member"
    assert workspace.member_count == 2

    with pytest.raises(ForbiddenError):
        await get_workspace(db_session, mallory, team_workspace.id)
