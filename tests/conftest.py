"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from pathlib import Path

# Settings are read at import time by several modules; configure them first.
# Ensure tests run in dev mode (bypasses auth) regardless of local .env
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./bookmark-workspaces-test.db")
os.environ["DEV_MODE"] = "true"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from testcontainers.postgres import PostgresContainer  # noqa: E402

from core.principal import Principal  # noqa: E402
from db.session import enable_sqlite_savepoints  # noqa: E402
from models.base import Base  # noqa: E402
from models.user import User  # noqa: E402
from models.workspace import Workspace, WorkspaceMember, WorkspaceRole  # noqa: E402
from services.notification_service import InvitationPayload  # noqa: E402

# SQLite by default; TEST_POSTGRES=1 runs the suite against a PostgreSQL container
USE_POSTGRES = os.environ.get("TEST_POSTGRES") == "1"


class RecordingSender:
    """Invitation sender that keeps every payload in memory."""

    def __init__(self) -> None:
        self.sent: list[InvitationPayload] = []

    async def send(self, payload: InvitationPayload) -> None:
        self.sent.append(payload)


class FailingSender:
    """Invitation sender whose transport is always down."""

    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, payload: InvitationPayload) -> None:  # noqa: ARG002
        self.attempts += 1
        raise ConnectionError("SMTP server unavailable")


@pytest.fixture(scope="session")
def postgres_url() -> Generator[str]:
    """Start a PostgreSQL container for the test session (TEST_POSTGRES=1 only)."""
    with PostgresContainer("postgres:16", driver="asyncpg") as postgres:
        yield postgres.get_connection_url()


@pytest.fixture
async def async_engine(
    request: pytest.FixtureRequest,
    tmp_path: Path,
) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine with the schema in place."""
    if USE_POSTGRES:
        engine = create_async_engine(request.getfixturevalue("postgres_url"), echo=False)
    else:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)
        enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_connection(async_engine: AsyncEngine) -> AsyncGenerator[AsyncConnection]:
    """
    Create a connection with a transaction that will be rolled back after the test.

    This provides test isolation - each test runs in its own transaction
    that is rolled back, so tests don't affect each other.
    """
    async with async_engine.connect() as connection:
        transaction = await connection.begin()
        try:
            yield connection
        finally:
            await transaction.rollback()


@pytest.fixture
async def db_session(db_connection: AsyncConnection) -> AsyncGenerator[AsyncSession]:
    """
    Create an async session bound to the test transaction.

    Uses begin_nested() for savepoints, allowing the session's flush/commit
    to work within our outer test transaction.
    """
    session_factory = async_sessionmaker(
        bind=db_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
def make_principal(db_session: AsyncSession) -> Callable[[str], Awaitable[Principal]]:
    """Factory creating a user row and returning its principal."""
    async def _make(email: str) -> Principal:
        user = User(auth0_id=f"test|{email}", email=email)
        db_session.add(user)
        await db_session.flush()
        return Principal(id=user.id, email=user.email)

    return _make


@pytest.fixture
async def alice(make_principal: Callable[[str], Awaitable[Principal]]) -> Principal:
    """Organization owner in most tests."""
    return await make_principal("alice@example.com")


@pytest.fixture
async def bob(make_principal: Callable[[str], Awaitable[Principal]]) -> Principal:
    """A second user, usually invited into alice's workspace."""
    return await make_principal("bob@example.com")


@pytest.fixture
async def mallory(make_principal: Callable[[str], Awaitable[Principal]]) -> Principal:
    """A user with no relationship to anyone else's data."""
    return await make_principal("mallory@example.com")


@pytest.fixture
async def team_workspace(db_session: AsyncSession, alice: Principal) -> Workspace:
    """Organization 'Acme' owned by alice with workspace 'Team' (alice is owner member)."""
    from schemas.workspace import OrganizationCreate  # noqa: PLC0415
    from services.workspace_service import create_organization_with_workspace  # noqa: PLC0415

    _, workspace = await create_organization_with_workspace(
        db_session,
        alice,
        OrganizationCreate(organization_name="Acme", workspace_name="Team"),
    )
    return workspace


@pytest.fixture
def add_member(
    db_session: AsyncSession,
) -> Callable[[Workspace, Principal, WorkspaceRole], Awaitable[WorkspaceMember]]:
    """Factory adding a membership directly."""
    async def _add(
        workspace: Workspace,
        principal: Principal,
        role: WorkspaceRole = WorkspaceRole.MEMBER,
    ) -> WorkspaceMember:
        membership = WorkspaceMember(
            user_id=principal.id, workspace_id=workspace.id, role=role,
        )
        db_session.add(membership)
        await db_session.flush()
        return membership

    return _add


@pytest.fixture
def sender() -> RecordingSender:
    """In-memory invitation sender."""
    return RecordingSender()


@pytest.fixture
async def client(
    db_session: AsyncSession,
    sender: RecordingSender,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session and sender overrides."""
    # Clear the settings cache so it picks up DATABASE_URL from environment
    from core.config import get_settings  # noqa: PLC0415

    get_settings.cache_clear()

    from api.dependencies import get_sender  # noqa: PLC0415
    from api.main import app  # noqa: PLC0415
    from db.session import get_async_session  # noqa: PLC0415

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_sender] = lambda: sender

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def act_as() -> Callable[[Principal], None]:
    """Make subsequent API requests authenticate as the given principal."""
    from api.main import app  # noqa: PLC0415
    from core.auth import get_current_principal  # noqa: PLC0415

    def _act_as(principal: Principal) -> None:
        app.dependency_overrides[get_current_principal] = lambda: principal

    return _act_as
