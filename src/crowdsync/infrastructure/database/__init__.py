"""Database infrastructure module."""

from crowdsync.infrastructure.database.session import (
    SessionFactory,
    create_async_db_engine,
    create_session_factory,
)

__all__ = [
    "SessionFactory",
    "create_async_db_engine",
    "create_session_factory",
]
