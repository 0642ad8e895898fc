"""Async SQLAlchemy session factory."""
from collections.abc import AsyncGenerator
from functools import lru_cache

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import get_settings


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    Let SQLAlchemy control BEGIN so SAVEPOINTs work, and enforce foreign keys.

    The sqlite3 driver otherwise issues its own BEGIN lazily, which breaks
    nested transactions.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, _connection_record) -> None:  # noqa: ANN001
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn) -> None:  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")


@lru_cache
def get_engine() -> AsyncEngine:
    """Create the process-wide engine on first use."""
    settings = get_settings()
    if settings.database_url.startswith("sqlite"):
        engine = create_async_engine(settings.database_url, echo=False)
        enable_sqlite_savepoints(engine)
        return engine
    return create_async_engine(
        settings.database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to the configured engine."""
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Yield an async database session.

    Uses unit-of-work pattern: services use flush() for refreshing objects,
    commit happens once here at request end. This ensures atomic transactions
    per request - if anything fails, all changes are rolled back.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
