"""Shared fixtures."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fietsroute.db.session import init_db


@pytest_asyncio.fixture
async def session_maker():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def fixed_clock():
    """Controllable clock for cache tests."""
    from datetime import datetime, timezone

    class Clock:
        def __init__(self):
            self.now = datetime(2025, 10, 18, 12, 0, tzinfo=timezone.utc)

        def __call__(self):
            return self.now

    return Clock()
