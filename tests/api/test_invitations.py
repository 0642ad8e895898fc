"""Tests for invitation delivery through the HTTP layer."""
from collections.abc import Callable
from unittest.mock import AsyncMock, patch
from uuid import UUID

from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from core.principal import Principal
from models.invitation import Invitation
from services.notification_service import InvitationPayload
from tests.conftest import FailingSender, RecordingSender


class CommitCheckingSender(RecordingSender):
    """Records whether the request transaction was still open when sending."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__()
        self.session = session
        self.open_transaction: list[bool] = []

    async def send(self, payload: InvitationPayload) -> None:
        self.open_transaction.append(self.session.in_transaction())
        await super().send(payload)


async def _create_organization(client: AsyncClient) -> tuple[str, str]:
    response = await client.post(
        "/organizations/",
        json={"organization_name": "Acme", "workspace_name": "Research"},
    )
    assert response.status_code == 201
    created = response.json()
    return created["organization"]["id"], created["workspace"]["id"]


async def test_create_invitation_sends_email_after_commit(
    client: AsyncClient,
    act_as: Callable[[Principal], None],
    alice: Principal,
    db_session: AsyncSession,
) -> None:
    from api.dependencies import get_sender  # noqa: PLC0415
    from api.main import app  # noqa: PLC0415

    act_as(alice)
    organization_id, workspace_id = await _create_organization(client)
    checking = CommitCheckingSender(db_session)
    app.dependency_overrides[get_sender] = lambda: checking

    response = await client.post(
        "/invitations/",
        json={
            "email": "bob@example.com",
            "organization_id": organization_id,
            "workspace_id": workspace_id,
        },
    )

    assert response.status_code == 201
    assert [p.to for p in checking.sent] == ["bob@example.com"]
    assert checking.open_transaction == [False]


async def test_create_invitation_failed_commit_sends_nothing(
    client: AsyncClient,
    act_as: Callable[[Principal], None],
    alice: Principal,
    db_session: AsyncSession,
    sender: RecordingSender,
) -> None:
    act_as(alice)
    organization_id, workspace_id = await _create_organization(client)

    failed_commit = AsyncMock(
        side_effect=OperationalError("COMMIT", {}, Exception("connection lost")),
    )
    with patch.object(db_session, "commit", failed_commit):
        response = await client.post(
            "/invitations/",
            json={
                "email": "bob@example.com",
                "organization_id": organization_id,
                "workspace_id": workspace_id,
            },
        )

    assert response.status_code == 500
    assert response.json()["error"] == "internal"
    assert sender.sent == []


async def test_create_invitation_delivery_failure_keeps_invitation(
    client: AsyncClient,
    act_as: Callable[[Principal], None],
    alice: Principal,
    db_session: AsyncSession,
) -> None:
    from api.dependencies import get_sender  # noqa: PLC0415
    from api.main import app  # noqa: PLC0415

    act_as(alice)
    organization_id, workspace_id = await _create_organization(client)
    failing = FailingSender()
    app.dependency_overrides[get_sender] = lambda: failing

    response = await client.post(
        "/invitations/",
        json={
            "email": "bob@example.com",
            "organization_id": organization_id,
            "workspace_id": workspace_id,
        },
    )

    assert response.status_code == 201
    assert failing.attempts == 1
    assert await db_session.get(Invitation, UUID(response.json()["id"])) is not None
