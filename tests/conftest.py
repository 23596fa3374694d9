"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from crowdsync.core.config import Settings
from crowdsync.infrastructure.database import create_session_factory
from crowdsync.models import Base


@pytest.fixture(scope="function")
def settings():
    """Create settings instance for testing."""
    return Settings(
        environment="testing",
        sync_cursor_backend="memory",
        cron_secret=None,
        log_format="console",
    )


@pytest.fixture
async def engine():
    """In-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory bound to the test engine."""
    return create_session_factory(engine)
