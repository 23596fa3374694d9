"""Chain-to-database reconciliation module."""

from crowdsync.services.reconciliation.applier import ApplierStats, EventApplier
from crowdsync.services.reconciliation.conflict import ChainWinsResolver
from crowdsync.services.reconciliation.cursor import CursorStore, SyncCursors
from crowdsync.services.reconciliation.handlers import (
    ApplyOutcome,
    ContributionMadeHandler,
    EventHandlerBase,
    FundsWithdrawnHandler,
    HandlerStats,
    ProjectCreatedHandler,
    RefundProcessedHandler,
)
from crowdsync.services.reconciliation.ordering import event_sort_key, order_events
from crowdsync.services.reconciliation.scheduler import (
    STREAM_ORDER,
    ReconciliationScheduler,
    SchedulerConfig,
    SchedulerState,
    SchedulerStats,
    StreamSyncError,
    StreamSyncResult,
)

__all__ = [
    # Ordering
    "event_sort_key",
    "order_events",
    # Applier
    "ApplierStats",
    "ApplyOutcome",
    "EventApplier",
    "EventHandlerBase",
    "HandlerStats",
    "ProjectCreatedHandler",
    "ContributionMadeHandler",
    "FundsWithdrawnHandler",
    "RefundProcessedHandler",
    # Conflict
    "ChainWinsResolver",
    # Cursor
    "CursorStore",
    "SyncCursors",
    # Scheduler
    "STREAM_ORDER",
    "ReconciliationScheduler",
    "SchedulerConfig",
    "SchedulerState",
    "SchedulerStats",
    "StreamSyncError",
    "StreamSyncResult",
]
