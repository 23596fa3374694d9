"""Database engine and session factory construction."""

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from crowdsync.core.config import Settings, get_settings

SessionFactory = async_sessionmaker[AsyncSession]


def create_async_db_engine(settings: Settings | None = None, **overrides: Any) -> AsyncEngine:
    """Create asynchronous database engine."""
    settings = settings or get_settings()
    options: dict[str, Any] = {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
        "echo": settings.debug,
    }
    if "poolclass" in overrides:
        # Sizing only applies to the default queue pool
        options.pop("pool_size")
        options.pop("max_overflow")
    options.update(overrides)
    return create_async_engine(settings.database_url, **options)


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Create a session factory bound to ``engine``."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )