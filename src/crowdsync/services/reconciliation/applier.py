"""Event applier routing ordered chain events to their handlers."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from crowdsync.infrastructure.chain.events import ChainEvent, EventKind
from crowdsync.infrastructure.database.session import SessionFactory
from crowdsync.services.reconciliation.conflict import ChainWinsResolver
from crowdsync.services.reconciliation.handlers import (
    ApplyOutcome,
    ContributionMadeHandler,
    EventHandlerBase,
    FundsWithdrawnHandler,
    ProjectCreatedHandler,
    RefundProcessedHandler,
)

logger = logging.getLogger(__name__)


@dataclass
class ApplierStats:
    """Statistics for the event applier."""

    events_applied: int = 0
    events_duplicate: int = 0
    events_skipped: int = 0
    events_ignored: int = 0
    errors: int = 0
    by_kind: dict[str, int] = field(default_factory=dict)


class EventApplier:
    """Applies chain events to the relational store, one handler per kind.

    Every event runs in its own transaction. Exceptions from a handler
    propagate to the caller after being counted.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        resolver: ChainWinsResolver | None = None,
    ):
        """Initialize event applier.

        Args:
            session_factory: Factory for database sessions
            resolver: Precedence policy shared by all handlers
        """
        self.session_factory = session_factory
        self.resolver = resolver or ChainWinsResolver()
        self._handlers: dict[str, EventHandlerBase] = {}
        self._stats = ApplierStats()

        for handler_cls in (
            ProjectCreatedHandler,
            ContributionMadeHandler,
            FundsWithdrawnHandler,
            RefundProcessedHandler,
        ):
            self.register_handler(handler_cls(session_factory, self.resolver))

    @property
    def stats(self) -> ApplierStats:
        """Get applier statistics."""
        return self._stats

    def register_handler(self, handler: EventHandlerBase) -> None:
        """Register the handler for its event kind, replacing any previous one."""
        self._handlers[handler.event_kind.value] = handler
        logger.debug(f"Registered handler for {handler.event_kind.value}")

    def get_handler(self, kind: EventKind | str) -> EventHandlerBase | None:
        """Get the handler for ``kind``, if any."""
        return self._handlers.get(_kind_name(kind))

    async def apply(self, event: ChainEvent) -> ApplyOutcome:
        """Apply one event.

        Args:
            event: Event to apply

        Returns:
            Outcome of the application

        Raises:
            Exception: Any store error not resolved by the handler's retry
        """
        kind = _kind_name(event.kind)
        handler = self._handlers.get(kind)

        if handler is None:
            self._stats.events_ignored += 1
            logger.warning(
                f"Unknown event kind: {kind}",
                extra={"tx_id": event.transaction_id, "block_height": event.block_height},
            )
            return ApplyOutcome.IGNORED

        try:
            outcome = await handler(event)
        except Exception:
            self._stats.errors += 1
            raise

        if outcome == ApplyOutcome.APPLIED:
            self._stats.events_applied += 1
            self._stats.by_kind[kind] = self._stats.by_kind.get(kind, 0) + 1
        elif outcome == ApplyOutcome.DUPLICATE:
            self._stats.events_duplicate += 1
        elif outcome == ApplyOutcome.SKIPPED:
            self._stats.events_skipped += 1

        return outcome

    async def record_contribution(
        self,
        tx_id: str,
        project_id: int,
        contributor: str,
        amount: Decimal | str,
        block_height: int,
    ) -> ApplyOutcome:
        """Record a confirmed contribution through the ContributionMade handler.

        Args:
            tx_id: Confirmed transaction id
            project_id: On-chain project id
            contributor: Contributor wallet address
            amount: Amount in tokens
            block_height: Block the transaction was sealed in
        """
        event = ChainEvent(
            kind=EventKind.CONTRIBUTION_MADE.value,
            transaction_id=tx_id,
            block_height=block_height,
            data={
                "projectId": project_id,
                "contributor": contributor,
                "amount": amount,
            },
        )
        return await self.apply(event)


def _kind_name(kind: EventKind | str) -> str:
    return kind.value if isinstance(kind, EventKind) else kind
