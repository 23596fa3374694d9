"""Reconciliation scheduler keeping the database in step with the chain."""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from crowdsync.infrastructure.chain.client import ChainQueryClient
from crowdsync.infrastructure.chain.events import ChainEvent, EventKind
from crowdsync.services.reconciliation.applier import EventApplier
from crowdsync.services.reconciliation.cursor import CursorStore
from crowdsync.services.reconciliation.handlers import ApplyOutcome
from crowdsync.services.reconciliation.ordering import order_events

logger = logging.getLogger(__name__)

# Projects first so the other streams find the projects they reference.
STREAM_ORDER: tuple[EventKind, ...] = (
    EventKind.PROJECT_CREATED,
    EventKind.CONTRIBUTION_MADE,
    EventKind.FUNDS_WITHDRAWN,
    EventKind.REFUND_PROCESSED,
)

ErrorCallback = Callable[[Exception], Any]


class SchedulerState(str, Enum):
    """Reconciliation scheduler state."""

    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class SchedulerConfig:
    """Configuration for the reconciliation scheduler."""

    # Seconds between cycles
    poll_interval: float = 60.0

    # Attempts per cycle before giving up until the next tick
    max_retries: int = 5

    # First backoff delay in seconds; doubles per failed attempt
    base_delay: float = 1.0


@dataclass
class StreamStats:
    """Statistics for one event stream."""

    events_fetched: int = 0
    events_applied: int = 0
    events_failed: int = 0
    last_synced_at: datetime | None = None


@dataclass
class SchedulerStats:
    """Statistics for the reconciliation scheduler."""

    state: SchedulerState = SchedulerState.STOPPED
    cycles_completed: int = 0
    cycles_failed: int = 0
    retries: int = 0
    last_error: str = ""
    last_cycle_at: datetime | None = None
    started_at: datetime | None = None
    streams: dict[str, StreamStats] = field(
        default_factory=lambda: {kind.value: StreamStats() for kind in STREAM_ORDER}
    )


@dataclass
class StreamSyncResult:
    """Outcome of one stream pass."""

    kind: EventKind
    fetched: int = 0
    applied: int = 0
    duplicate: int = 0
    skipped: int = 0
    ignored: int = 0
    cursor: int = 0


class StreamSyncError(Exception):
    """Raised by a stream pass when some of its events could not be applied."""

    def __init__(self, kind: EventKind, failures: list[tuple[ChainEvent, Exception]]):
        self.kind = kind
        self.failures = failures
        heights = sorted({event.block_height for event, _ in failures})
        super().__init__(
            f"{len(failures)} {kind.value} event(s) failed at heights {heights}: "
            f"{failures[0][1]}"
        )


class ReconciliationScheduler:
    """Periodic, cursor-driven reconciliation of chain events into the store.

    Each cycle runs the four event streams in a fixed order. A stream pass
    fetches events above its cursor, orders them, applies each one and then
    moves the cursor forward only past events that were applied. Failed and
    skipped events hold it below them until a later pass applies them. A
    failed cycle is retried with exponential backoff and reported to the
    registered error callbacks.
    """

    def __init__(
        self,
        client: ChainQueryClient,
        applier: EventApplier,
        cursor_store: CursorStore,
        config: SchedulerConfig | None = None,
    ):
        """Initialize reconciliation scheduler.

        Args:
            client: Chain query client
            applier: Event applier for the relational store
            cursor_store: Per-stream cursor persistence
            config: Scheduler configuration
        """
        self.client = client
        self.applier = applier
        self.cursor_store = cursor_store
        self.config = config or SchedulerConfig()

        # State
        self._state = SchedulerState.STOPPED
        self._stats = SchedulerStats()
        self._error_callbacks: list[ErrorCallback] = []
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> SchedulerState:
        """Get current scheduler state."""
        return self._state

    @property
    def stats(self) -> SchedulerStats:
        """Get scheduler statistics."""
        self._stats.state = self._state
        return self._stats

    def is_running(self) -> bool:
        """Whether the scheduler is ticking."""
        return self._state == SchedulerState.RUNNING

    def on_error(self, callback: ErrorCallback) -> Callable[[], None]:
        """Register a callback invoked with every failed cycle attempt's error.

        Args:
            callback: Sync or async callable taking the exception

        Returns:
            Function removing the callback again
        """
        self._error_callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._error_callbacks:
                self._error_callbacks.remove(callback)

        return unsubscribe

    async def start(self) -> None:
        """Run one cycle now, then keep cycling every ``poll_interval`` seconds."""
        if self._state == SchedulerState.RUNNING:
            logger.warning("Reconciliation scheduler is already running")
            return

        self._state = SchedulerState.RUNNING
        self._stop_event.clear()
        self._stats.started_at = datetime.now(timezone.utc)
        logger.info(
            f"Starting reconciliation scheduler (interval {self.config.poll_interval}s)"
        )

        await self._run_cycle_with_retry()

        # stop() may have been called while the first cycle ran
        if self._state == SchedulerState.RUNNING:
            self._task = asyncio.create_task(self._tick_loop())

    async def stop(self) -> None:
        """Stop cycling. A cycle already in flight finishes first."""
        if self._state == SchedulerState.STOPPED:
            return

        logger.info("Stopping reconciliation scheduler...")
        self._state = SchedulerState.STOPPED
        self._stop_event.set()

        if self._task:
            await self._task
            self._task = None

        logger.info("Reconciliation scheduler stopped")

    async def _tick_loop(self) -> None:
        """Main scheduling loop. Cycles never overlap."""
        while not self._stop_event.is_set():
            if await self._wait_for_stop(self.config.poll_interval):
                break
            await self._run_cycle_with_retry()

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if stop was requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def _run_cycle_with_retry(self) -> bool:
        """Run a full cycle, retrying with exponential backoff.

        Returns:
            True if an attempt succeeded
        """
        max_retries = max(1, self.config.max_retries)

        for attempt in range(1, max_retries + 1):
            try:
                await self.sync_all()
                self._stats.cycles_completed += 1
                self._stats.last_cycle_at = datetime.now(timezone.utc)
                return True

            except Exception as e:
                self._stats.last_error = str(e)
                await self._notify_error(e)

                if attempt >= max_retries:
                    self._stats.cycles_failed += 1
                    logger.error(
                        f"Sync cycle failed after {attempt} attempts: {e}",
                        extra={"attempts": attempt},
                    )
                    return False

                delay = self.config.base_delay * 2 ** (attempt - 1)
                self._stats.retries += 1
                logger.warning(
                    f"Sync cycle failed (attempt {attempt}/{max_retries}), "
                    f"retrying in {delay}s: {e}"
                )

                if await self._wait_for_stop(delay):
                    logger.info("Stop requested, abandoning sync retries")
                    return False

        return False

    async def _notify_error(self, error: Exception) -> None:
        for callback in list(self._error_callbacks):
            try:
                result = callback(error)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error callback failed: {e}")

    async def sync_all(self) -> list[StreamSyncResult]:
        """Run every stream pass once, in dependency order."""
        results = []
        for kind in STREAM_ORDER:
            results.append(await self.sync_stream(kind))
        return results

    async def sync_projects(self) -> StreamSyncResult:
        """Sync ProjectCreated events."""
        return await self.sync_stream(EventKind.PROJECT_CREATED)

    async def sync_contributions(self) -> StreamSyncResult:
        """Sync ContributionMade events."""
        return await self.sync_stream(EventKind.CONTRIBUTION_MADE)

    async def sync_withdrawals(self) -> StreamSyncResult:
        """Sync FundsWithdrawn events."""
        return await self.sync_stream(EventKind.FUNDS_WITHDRAWN)

    async def sync_refunds(self) -> StreamSyncResult:
        """Sync RefundProcessed events."""
        return await self.sync_stream(EventKind.REFUND_PROCESSED)

    async def sync_stream(self, kind: EventKind) -> StreamSyncResult:
        """Fetch, order and apply one stream's new events, then advance its cursor.

        Args:
            kind: Stream to sync

        Returns:
            Stream pass result

        Raises:
            ChainQueryError: If events could not be fetched
            StreamSyncError: If some events failed; the cursor stays below them
        """
        since = await self.cursor_store.get(kind.value)
        events = order_events(await self.client.fetch_events(kind, since))

        result = StreamSyncResult(kind=kind, fetched=len(events), cursor=since)
        stream_stats = self._stats.streams.setdefault(kind.value, StreamStats())
        stream_stats.events_fetched += len(events)

        applied_heights: list[int] = []
        skipped_heights: list[int] = []
        failures: list[tuple[ChainEvent, Exception]] = []

        for event in events:
            try:
                outcome = await self.applier.apply(event)
            except Exception as e:
                failures.append((event, e))
                logger.error(
                    f"Failed to apply {kind.value} event: {e}",
                    extra={"tx_id": event.transaction_id, "block_height": event.block_height},
                )
                continue

            if outcome == ApplyOutcome.SKIPPED:
                # Refetched until the referenced project has been synced
                skipped_heights.append(event.block_height)
                result.skipped += 1
                continue

            applied_heights.append(event.block_height)
            if outcome == ApplyOutcome.APPLIED:
                result.applied += 1
            elif outcome == ApplyOutcome.DUPLICATE:
                result.duplicate += 1
            else:
                result.ignored += 1

        blocked_heights = skipped_heights + [event.block_height for event, _ in failures]
        target = _cursor_target(applied_heights, blocked_heights)
        if target is not None:
            await self.cursor_store.advance(kind.value, target)
        result.cursor = await self.cursor_store.get(kind.value)

        stream_stats.events_applied += result.applied
        stream_stats.events_failed += len(failures)
        stream_stats.last_synced_at = datetime.now(timezone.utc)

        logger.info(
            f"Synced {kind.value}: {result.fetched} fetched, {result.applied} applied, "
            f"{result.duplicate} duplicate, {result.skipped} skipped, "
            f"{len(failures)} failed",
            extra={"stream": kind.value, "cursor": result.cursor},
        )

        if failures:
            raise StreamSyncError(kind, failures)
        return result

    async def get_status(self) -> dict[str, Any]:
        """Get scheduler status.

        Returns:
            Status dictionary including the stream cursors
        """
        stats = self.stats
        return {
            "state": stats.state.value,
            "running": self.is_running(),
            "poll_interval": self.config.poll_interval,
            "cycles_completed": stats.cycles_completed,
            "cycles_failed": stats.cycles_failed,
            "retries": stats.retries,
            "last_error": stats.last_error,
            "last_cycle_at": stats.last_cycle_at.isoformat() if stats.last_cycle_at else None,
            "started_at": stats.started_at.isoformat() if stats.started_at else None,
            "cursors": await self.cursor_store.snapshot(),
            "streams": {
                name: {
                    "events_fetched": s.events_fetched,
                    "events_applied": s.events_applied,
                    "events_failed": s.events_failed,
                }
                for name, s in stats.streams.items()
            },
        }


def _cursor_target(applied_heights: list[int], blocked_heights: list[int]) -> int | None:
    """Highest height the cursor may move to after a pass.

    Blocked heights belong to failed or skipped events. Only applied heights
    strictly below the lowest blocked height count, so those events are
    fetched again on the next pass.
    """
    if blocked_heights:
        lowest_blocked = min(blocked_heights)
        applied_heights = [h for h in applied_heights if h < lowest_blocked]
    return max(applied_heights) if applied_heights else None
