"""Idempotent per-kind handlers for crowdfunding contract events.

Each handler applies one event inside its own session: the session commits when
the handler returns and rolls back when it raises, so an event is never
partially applied. Writes are insert-if-absent or idempotent sets only.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crowdsync.infrastructure.chain.events import (
    ChainEvent,
    EventKind,
    from_unix_seconds,
    to_base_units,
)
from crowdsync.infrastructure.database.session import SessionFactory
from crowdsync.models.project import Project, ProjectStatus
from crowdsync.repositories import (
    ContributionRepository,
    ProjectRepository,
    UserRepository,
)
from crowdsync.services.reconciliation.conflict import ChainWinsResolver

logger = logging.getLogger(__name__)


class ApplyOutcome(str, Enum):
    """Result of applying one event."""

    APPLIED = "applied"  # the store changed
    DUPLICATE = "duplicate"  # the store already reflected the event
    SKIPPED = "skipped"  # referenced project not synced yet
    IGNORED = "ignored"  # unknown event kind


@dataclass
class HandlerStats:
    """Statistics for an event handler."""

    handler_name: str
    event_kind: EventKind
    events_applied: int = 0
    events_duplicate: int = 0
    events_skipped: int = 0
    events_failed: int = 0
    total_processing_time_ms: float = 0.0
    last_processed: datetime | None = None
    last_error: str = ""


class EventHandlerBase(ABC):
    """Base class for event handlers."""

    def __init__(
        self,
        event_kind: EventKind,
        session_factory: SessionFactory,
        resolver: ChainWinsResolver | None = None,
    ):
        """Initialize handler.

        Args:
            event_kind: Kind of events this handler applies
            session_factory: Factory for database sessions
            resolver: Precedence policy for chain vs stored values
        """
        self.event_kind = event_kind
        self.session_factory = session_factory
        self.resolver = resolver or ChainWinsResolver()
        self.stats = HandlerStats(
            handler_name=self.__class__.__name__,
            event_kind=event_kind,
        )

    @abstractmethod
    async def handle(self, event: ChainEvent, session: AsyncSession) -> ApplyOutcome:
        """Apply an event using ``session``. Must not commit.

        Args:
            event: Chain event of this handler's kind
            session: Open database session
        """
        pass

    async def __call__(self, event: ChainEvent) -> ApplyOutcome:
        """Apply event with timing, conflict retry and error accounting."""
        start_time = datetime.now(timezone.utc)

        try:
            try:
                outcome = await self._apply_in_transaction(event)
            except IntegrityError as e:
                # Another writer inserted the same row first; reapplying takes
                # the idempotent skip path.
                logger.info(
                    f"{self.__class__.__name__} hit a concurrent write, reapplying",
                    extra={"tx_id": event.transaction_id, "error": str(e.orig)},
                )
                outcome = await self._apply_in_transaction(event)

            self._count(outcome)
            self.stats.last_processed = datetime.now(timezone.utc)
            return outcome

        except Exception as e:
            self.stats.events_failed += 1
            self.stats.last_error = str(e)
            logger.error(
                f"{self.__class__.__name__} failed: {e}",
                extra={"tx_id": event.transaction_id, "block_height": event.block_height},
            )
            raise

        finally:
            elapsed = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            self.stats.total_processing_time_ms += elapsed

    async def _apply_in_transaction(self, event: ChainEvent) -> ApplyOutcome:
        async with self.session_factory() as session:
            outcome = await self.handle(event, session)
            await session.commit()
            return outcome

    def _count(self, outcome: ApplyOutcome) -> None:
        if outcome == ApplyOutcome.APPLIED:
            self.stats.events_applied += 1
        elif outcome == ApplyOutcome.DUPLICATE:
            self.stats.events_duplicate += 1
        elif outcome == ApplyOutcome.SKIPPED:
            self.stats.events_skipped += 1

    async def _apply_status(
        self, session: AsyncSession, project: Project, target: ProjectStatus
    ) -> bool:
        """Overwrite project status with the chain-derived ``target``.

        Returns:
            True if the stored status changed
        """
        current = project.status_enum
        resolved = ProjectStatus(self.resolver.resolve(current, target))
        if resolved == current:
            return False

        if not current.can_transition_to(resolved):
            logger.warning(
                f"Refusing status transition {current.value} -> {resolved.value}",
                extra={"project_id": project.contract_id},
            )
            return False

        await ProjectRepository(session).set_status(project, resolved)
        logger.info(
            f"Project {project.contract_id} status {current.value} -> {resolved.value}"
        )
        return True


class ProjectCreatedHandler(EventHandlerBase):
    """Handler for ProjectCreated events.

    Inserts the project as active unless its on-chain id is already known.
    """

    def __init__(self, session_factory: SessionFactory, resolver: ChainWinsResolver | None = None):
        super().__init__(EventKind.PROJECT_CREATED, session_factory, resolver)

    async def handle(self, event: ChainEvent, session: AsyncSession) -> ApplyOutcome:
        """Handle ProjectCreated event."""
        data = event.data
        contract_id = int(data["projectId"])
        creator = data["creator"]

        projects = ProjectRepository(session)
        if await projects.exists_contract_id(contract_id):
            logger.info(f"Project {contract_id} already synced")
            return ApplyOutcome.DUPLICATE

        await UserRepository(session).ensure_exists(creator)

        await projects.create({
            "contract_id": contract_id,
            "title": data["title"],
            "description": "",
            "creator_address": creator,
            "goal_amount": to_base_units(data["goal"]),
            "current_amount": 0,
            "contributor_count": 0,
            "deadline": from_unix_seconds(data["deadline"]),
            "status": ProjectStatus.ACTIVE.value,
        })

        logger.info(
            f"Synced project {contract_id}",
            extra={"tx_id": event.transaction_id, "creator": creator},
        )
        return ApplyOutcome.APPLIED


class ContributionMadeHandler(EventHandlerBase):
    """Handler for ContributionMade events.

    Records one contribution per transaction id. Running totals are left to
    the database trigger.
    """

    def __init__(self, session_factory: SessionFactory, resolver: ChainWinsResolver | None = None):
        super().__init__(EventKind.CONTRIBUTION_MADE, session_factory, resolver)

    async def handle(self, event: ChainEvent, session: AsyncSession) -> ApplyOutcome:
        """Handle ContributionMade event."""
        data = event.data
        contract_id = int(data["projectId"])
        contributor = data["contributor"]

        project = await ProjectRepository(session).get_by_contract_id(contract_id)
        if project is None:
            logger.warning(
                f"Project {contract_id} not found for contribution",
                extra={"tx_id": event.transaction_id, "block_height": event.block_height},
            )
            return ApplyOutcome.SKIPPED

        await UserRepository(session).ensure_exists(contributor)

        contributions = ContributionRepository(session)
        if await contributions.exists_tx(event.transaction_id):
            logger.info(f"Contribution {event.transaction_id} already synced")
            return ApplyOutcome.DUPLICATE

        await contributions.create({
            "project_id": project.id,
            "contributor_address": contributor,
            "amount": to_base_units(data["amount"]),
            "tx_id": event.transaction_id,
            "block_height": event.block_height,
        })

        logger.info(
            f"Synced contribution to project {contract_id}",
            extra={"tx_id": event.transaction_id, "contributor": contributor},
        )
        return ApplyOutcome.APPLIED


class FundsWithdrawnHandler(EventHandlerBase):
    """Handler for FundsWithdrawn events."""

    def __init__(self, session_factory: SessionFactory, resolver: ChainWinsResolver | None = None):
        super().__init__(EventKind.FUNDS_WITHDRAWN, session_factory, resolver)

    async def handle(self, event: ChainEvent, session: AsyncSession) -> ApplyOutcome:
        """Handle FundsWithdrawn event."""
        contract_id = int(event.data["projectId"])

        project = await ProjectRepository(session).get_by_contract_id(contract_id)
        if project is None:
            logger.warning(f"Project {contract_id} not found for withdrawal")
            return ApplyOutcome.SKIPPED

        changed = await self._apply_status(session, project, ProjectStatus.WITHDRAWN)
        logger.info(f"Synced withdrawal for project {contract_id}")
        return ApplyOutcome.APPLIED if changed else ApplyOutcome.DUPLICATE


class RefundProcessedHandler(EventHandlerBase):
    """Handler for RefundProcessed events.

    A refund means the goal was missed, so an active project becomes expired.
    """

    def __init__(self, session_factory: SessionFactory, resolver: ChainWinsResolver | None = None):
        super().__init__(EventKind.REFUND_PROCESSED, session_factory, resolver)

    async def handle(self, event: ChainEvent, session: AsyncSession) -> ApplyOutcome:
        """Handle RefundProcessed event."""
        contract_id = int(event.data["projectId"])

        project = await ProjectRepository(session).get_by_contract_id(contract_id)
        if project is None:
            logger.warning(f"Project {contract_id} not found for refund")
            return ApplyOutcome.SKIPPED

        changed = False
        if project.status_enum == ProjectStatus.ACTIVE:
            changed = await self._apply_status(session, project, ProjectStatus.EXPIRED)

        logger.info(
            f"Synced refund for project {contract_id}, "
            f"contributor {event.data.get('contributor')}"
        )
        return ApplyOutcome.APPLIED if changed else ApplyOutcome.DUPLICATE
