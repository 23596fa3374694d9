"""Per-stream sync cursor persistence."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class SyncCursors(BaseModel):
    """Highest applied block height per event stream."""

    heights: dict[str, int] = {}
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CursorStore:
    """Manages sync cursor persistence so a restart resumes where it stopped.

    Supports both file-based and Redis-based storage; with neither configured
    the cursors live in memory only. Cursors only move forward, except through
    the explicit ``reset`` operator action.
    """

    def __init__(
        self,
        cursor_path: str | Path | None = None,
        redis_client: Any = None,
        redis_key: str = "crowdsync:cursors",
        start_height: int = 0,
    ):
        """Initialize cursor store.

        Args:
            cursor_path: Path for file-based cursor storage
            redis_client: Redis client for distributed storage
            redis_key: Redis key for cursor storage
            start_height: Cursor value of streams never synced before
        """
        self.cursor_path = Path(cursor_path) if cursor_path else None
        self.redis_client = redis_client
        self.redis_key = redis_key
        self.start_height = start_height
        self._cursors: SyncCursors | None = None

    @property
    def is_persistent(self) -> bool:
        """Whether a Redis or file backend is configured."""
        return bool(self.redis_client or self.cursor_path)

    async def load(self) -> SyncCursors:
        """Load cursors from storage.

        Returns:
            Stored cursors, or empty cursors if nothing was persisted
        """
        # Try Redis first
        if self.redis_client:
            cursors = await self._load_from_redis()
            if cursors:
                self._cursors = cursors
                return cursors

        # Fall back to file
        if self.cursor_path and self.cursor_path.exists():
            cursors = self._load_from_file()
            if cursors:
                self._cursors = cursors
                return cursors

        self._cursors = SyncCursors()
        return self._cursors

    async def _ensure_loaded(self) -> SyncCursors:
        if self._cursors is None:
            await self.load()
        return self._cursors

    async def get(self, stream: str) -> int:
        """Get the last applied block height of ``stream``."""
        cursors = await self._ensure_loaded()
        return cursors.heights.get(stream, self.start_height)

    async def advance(self, stream: str, block_height: int) -> bool:
        """Move the cursor of ``stream`` forward to ``block_height``.

        Heights at or below the current cursor are ignored.

        Args:
            stream: Stream identifier
            block_height: Highest block height fully applied

        Returns:
            True if the cursor moved
        """
        current = await self.get(stream)
        if block_height <= current:
            logger.debug(
                f"Cursor for {stream} stays at {current} (offered {block_height})"
            )
            return False

        self._cursors.heights[stream] = block_height
        persisted = await self.save(self._cursors)
        if not persisted and self.is_persistent:
            logger.warning(
                f"Cursor for {stream} advanced to {block_height} in memory only; "
                f"a restart resumes from the last persisted height",
                extra={"stream": stream, "to_height": block_height},
            )
        logger.info(
            f"Cursor for {stream} advanced {current} -> {block_height}",
            extra={"stream": stream, "from_height": current, "to_height": block_height},
        )
        return True

    async def snapshot(self) -> dict[str, int]:
        """Copy of the current cursors."""
        cursors = await self._ensure_loaded()
        return dict(cursors.heights)

    async def save(self, cursors: SyncCursors) -> bool:
        """Save cursors to storage.

        Args:
            cursors: Cursor state to save

        Returns:
            True if persisted to Redis or file
        """
        cursors.last_updated = datetime.now(timezone.utc)
        self._cursors = cursors

        # Save to Redis if available
        if self.redis_client:
            saved = await self._save_to_redis(cursors)
            if saved:
                return True

        # Fall back to file
        if self.cursor_path:
            return self._save_to_file(cursors)

        return False

    async def reset(self, stream: str | None = None) -> bool:
        """Reset one stream's cursor, or all of them. Operator action only.

        Returns:
            True if persisted
        """
        cursors = await self._ensure_loaded()
        if stream is None:
            cursors.heights.clear()
        else:
            cursors.heights.pop(stream, None)
        logger.warning(f"Sync cursor reset: {stream or 'all streams'}")
        return await self.save(cursors)

    async def _load_from_redis(self) -> SyncCursors | None:
        """Load cursors from Redis."""
        try:
            data = await self.redis_client.get(self.redis_key)
            if data:
                return SyncCursors.model_validate_json(data)
        except Exception as e:
            logger.error(f"Failed to load cursors from Redis: {e}")
        return None

    async def _save_to_redis(self, cursors: SyncCursors) -> bool:
        """Save cursors to Redis."""
        try:
            await self.redis_client.set(self.redis_key, cursors.model_dump_json())
            return True
        except Exception as e:
            logger.error(f"Failed to save cursors to Redis: {e}")
            return False

    def _load_from_file(self) -> SyncCursors | None:
        """Load cursors from file."""
        try:
            with open(self.cursor_path, "r") as f:
                return SyncCursors.model_validate(json.load(f))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load cursors from file: {e}")
            return None

    def _save_to_file(self, cursors: SyncCursors) -> bool:
        """Save cursors to file."""
        try:
            self.cursor_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cursor_path, "w") as f:
                json.dump(cursors.model_dump(mode="json"), f, indent=2)
            return True
        except OSError as e:
            logger.error(f"Failed to save cursors to file: {e}")
            return False
