"""Shared pytest fixtures for scheduler testing.

This module provides reusable fixtures for testing the channel store, the
scheduler and the broadcast coordinator against an in-memory SQLite
database, plus recording fakes for announcers and observers.
"""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from channel_scheduler.main import app
from channel_scheduler.services.broadcast import BroadcastCoordinator
from channel_scheduler.services.scheduler import ChannelScheduler
from tests.support.fakes import FakeClock, RecordingAnnouncer, RecordingObserver


@pytest.fixture
def announcer() -> RecordingAnnouncer:
    return RecordingAnnouncer()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def scheduler(store, announcer, clock):
    """ChannelScheduler without heartbeat (tests call tick() directly).

    All jobs are cancelled at teardown.
    """
    scheduler = ChannelScheduler(store, announcer, clock=clock)
    yield scheduler
    await scheduler.shutdown()


@pytest.fixture
async def broadcaster(store):
    """BroadcastCoordinator with a short coalescing window."""
    broadcaster = BroadcastCoordinator(store, coalesce_seconds=0.05)
    yield broadcaster
    await broadcaster.close()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """FastAPI test client running the full lifespan.

    Uses an in-memory database, no heartbeat (ticks are driven explicitly
    through client.portal) and no coalescing delay.
    """
    monkeypatch.setattr(
        "channel_scheduler.main.get_database_url", lambda: "sqlite+aiosqlite:///:memory:"
    )
    monkeypatch.setenv("SCHEDULER_HEARTBEAT_ENABLED", "false")
    monkeypatch.setenv("BROADCAST_COALESCE_MS", "0")
    monkeypatch.setenv("SEED_DEMO_CHANNELS", "false")

    with TestClient(app) as test_client:
        yield test_client


# Import additional fixtures from fixtures/ package
from tests.fixtures.database import (  # noqa: F401, E402
    async_test_engine,
    failing_session_factory,
    store,
    test_session_factory,
)
