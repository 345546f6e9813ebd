"""Async database engine and session management.

This module provides the async SQLAlchemy 2.0 engine configuration and the
session factory consumed by the channel store.

Unlike a per-request session dependency, the scheduler runs outside of
requests (heartbeat and recurrence tasks), so the engine and session factory
are built explicitly in the application lifespan and handed to the
ChannelStore.

Usage:
    from channel_scheduler.database import create_engine, create_session_factory

    engine = create_engine()
    session_factory = create_session_factory(engine)
    await init_models(engine)
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from channel_scheduler.config import get_database_echo, get_database_url
from channel_scheduler.models import Base


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create the application engine.

    Args:
        database_url: Override for the configured DATABASE_URL.

    Returns:
        AsyncEngine bound to the configured database.
    """
    url = database_url or get_database_url()
    echo = get_database_echo()

    if url.startswith("sqlite"):
        if ":memory:" in url:
            # Single connection, otherwise every connection sees an empty database
            return create_async_engine(url, echo=echo, poolclass=StaticPool)
        # SQLite: single file, no pool tuning
        return create_async_engine(url, echo=echo)

    return create_async_engine(
        url,
        pool_size=10,
        max_overflow=5,
        pool_pre_ping=True,
        echo=echo,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to ``engine``.

    Sessions do not expire attributes on commit, so Channel instances returned
    by the store stay readable after their session is closed.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # CRITICAL: prevents attribute expiration after commit
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet.

    Production deployments run Alembic migrations; this keeps a fresh SQLite
    file usable without a migration step.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def create_test_engine(
    database_url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an async engine for testing.

    Args:
        database_url: Test database URL (defaults to in-memory SQLite).

    Returns:
        Tuple of (engine, async_session_factory) for testing.
    """
    test_engine = create_async_engine(
        database_url,
        echo=False,
        poolclass=StaticPool,  # Single connection for in-memory DB
    )
    return test_engine, create_session_factory(test_engine)
