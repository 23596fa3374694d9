"""Tests for service wiring."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from crowdsync.core.config import Settings
from crowdsync.services.factory import build_cursor_store, build_services
from crowdsync.services.reconciliation import CursorStore


class TestBuildCursorStore:
    """Tests for build_cursor_store."""

    def test_memory_backend(self):
        """Test the memory backend persists nowhere."""
        store = build_cursor_store(Settings(sync_cursor_backend="memory", sync_start_height=7))
        assert store.cursor_path is None
        assert store.redis_client is None
        assert store.start_height == 7

    def test_file_backend(self, tmp_path):
        """Test the file backend uses the configured path."""
        path = tmp_path / "cursors.json"
        store = build_cursor_store(
            Settings(sync_cursor_backend="file", sync_cursor_path=str(path))
        )
        assert store.cursor_path == path
        assert store.redis_client is None

    def test_redis_backend(self):
        """Test the redis backend keeps the file as fallback."""
        store = build_cursor_store(
            Settings(sync_cursor_backend="redis", sync_cursor_redis_key="k")
        )
        assert store.redis_client is not None
        assert store.redis_key == "k"
        assert store.cursor_path is not None


class TestBuildServices:
    """Tests for build_services."""

    @pytest.mark.asyncio
    async def test_wires_settings(self, session_factory):
        """Test services share collaborators and take their tuning from settings."""
        settings = Settings(
            sync_poll_interval=15,
            sync_max_retries=2,
            sync_base_delay=0.5,
            confirmation_poll_interval=1.5,
            confirmation_max_attempts=4,
            sync_cursor_backend="memory",
        )
        client = MagicMock()
        client.close = AsyncMock()

        services = build_services(session_factory, settings=settings, client=client)

        assert services.scheduler.client is client
        assert services.scheduler.applier is services.applier
        assert services.recorder.applier is services.applier
        assert services.recorder.poller is services.poller
        assert services.scheduler.config.poll_interval == 15
        assert services.scheduler.config.max_retries == 2
        assert services.scheduler.config.base_delay == 0.5
        assert services.poller.poll_interval == 1.5
        assert services.poller.max_attempts == 4
        assert isinstance(services.cursor_store, CursorStore)

        await services.close()
        client.close.assert_awaited_once()
