"""Tests for the event applier and its handlers."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from crowdsync.infrastructure.chain.events import BASE_UNITS_PER_TOKEN, ChainEvent, EventKind
from crowdsync.models import Contribution, Project, ProjectStatus, User
from crowdsync.repositories import ContributionRepository
from crowdsync.services.reconciliation.applier import EventApplier
from crowdsync.services.reconciliation.handlers import ApplyOutcome

CREATOR = "0x01cf0e2f2f715450"
BACKER = "0x179b6b1cb6755e31"
DEADLINE = 1893456000  # 2030-01-01T00:00:00Z


def project_created(project_id: int = 1, goal: str = "100.0", height: int = 10) -> ChainEvent:
    return ChainEvent(
        kind=EventKind.PROJECT_CREATED.value,
        transaction_id=f"tx-project-{project_id}",
        block_height=height,
        data={
            "projectId": project_id,
            "creator": CREATOR,
            "title": f"Project {project_id}",
            "goal": Decimal(goal),
            "deadline": Decimal(DEADLINE),
        },
    )


def contribution_made(
    tx_id: str = "tx-c1", project_id: int = 1, amount: str = "25.0", height: int = 20
) -> ChainEvent:
    return ChainEvent(
        kind=EventKind.CONTRIBUTION_MADE.value,
        transaction_id=tx_id,
        block_height=height,
        data={"projectId": project_id, "contributor": BACKER, "amount": Decimal(amount)},
    )


def project_event(kind: EventKind, project_id: int = 1, height: int = 30) -> ChainEvent:
    return ChainEvent(
        kind=kind.value,
        transaction_id=f"tx-{kind.value}-{project_id}-{height}",
        block_height=height,
        data={"projectId": project_id, "contributor": BACKER, "amount": Decimal("1")},
    )


async def load_project(session_factory, contract_id: int = 1) -> Project | None:
    async with session_factory() as session:
        result = await session.execute(
            select(Project).where(Project.contract_id == contract_id)
        )
        return result.scalar_one_or_none()


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


async def set_status(session_factory, status: ProjectStatus, contract_id: int = 1) -> None:
    async with session_factory() as session:
        project = (
            await session.execute(select(Project).where(Project.contract_id == contract_id))
        ).scalar_one()
        project.status = status.value
        await session.commit()


@pytest.fixture
def applier(session_factory):
    """Event applier over the test database."""
    return EventApplier(session_factory)


class TestProjectCreated:
    """Tests for ProjectCreated handling."""

    @pytest.mark.asyncio
    async def test_inserts_active_project(self, applier, session_factory):
        """Test a new project is inserted as active with converted fields."""
        outcome = await applier.apply(project_created(goal="100.5"))

        assert outcome == ApplyOutcome.APPLIED
        project = await load_project(session_factory)
        assert project is not None
        assert project.status == ProjectStatus.ACTIVE.value
        assert project.goal_amount == 10_050_000_000
        assert project.current_amount == 0
        assert project.creator_address == CREATOR
        assert project.deadline.replace(tzinfo=timezone.utc) == datetime(
            2030, 1, 1, tzinfo=timezone.utc
        )
        assert await count_rows(session_factory, User) == 1

    @pytest.mark.asyncio
    async def test_duplicate_is_not_reapplied(self, applier, session_factory):
        """Test applying the same event twice leaves one project."""
        await applier.apply(project_created())
        outcome = await applier.apply(project_created())

        assert outcome == ApplyOutcome.DUPLICATE
        assert await count_rows(session_factory, Project) == 1
        assert applier.stats.events_applied == 1
        assert applier.stats.events_duplicate == 1

    @pytest.mark.asyncio
    async def test_malformed_event_raises(self, applier, session_factory):
        """Test a store or data error propagates and leaves nothing behind."""
        event = project_created()
        del event.data["title"]

        with pytest.raises(KeyError):
            await applier.apply(event)

        assert await count_rows(session_factory, Project) == 0
        assert await count_rows(session_factory, User) == 0
        assert applier.stats.errors == 1


class TestContributionMade:
    """Tests for ContributionMade handling."""

    @pytest.mark.asyncio
    async def test_unknown_project_is_skipped(self, applier, session_factory, caplog):
        """Test a contribution to an unsynced project is skipped with a warning."""
        with caplog.at_level(logging.WARNING):
            outcome = await applier.apply(contribution_made(project_id=42))

        assert outcome == ApplyOutcome.SKIPPED
        assert await count_rows(session_factory, Contribution) == 0
        assert any("42" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)

    @pytest.mark.asyncio
    async def test_records_contribution(self, applier, session_factory):
        """Test a contribution is recorded with tx id, height and base units."""
        await applier.apply(project_created())
        outcome = await applier.apply(contribution_made(amount="25.5", height=21))

        assert outcome == ApplyOutcome.APPLIED
        async with session_factory() as session:
            contribution = await ContributionRepository(session).get_by_tx_id("tx-c1")
        assert contribution is not None
        assert contribution.amount == 2_550_000_000
        assert contribution.block_height == 21
        assert contribution.contributor_address == BACKER
        assert await count_rows(session_factory, User) == 2

    @pytest.mark.asyncio
    async def test_duplicate_transaction(self, applier, session_factory):
        """Test the same transaction is recorded once."""
        await applier.apply(project_created())
        await applier.apply(contribution_made())
        outcome = await applier.apply(contribution_made())

        assert outcome == ApplyOutcome.DUPLICATE
        assert await count_rows(session_factory, Contribution) == 1

    @pytest.mark.asyncio
    async def test_overfunding_is_recorded_unclamped(self, applier, session_factory):
        """Test contributions beyond the goal are stored in full."""
        await applier.apply(project_created(goal="100"))
        await applier.apply(contribution_made(tx_id="tx-a", amount="80"))
        await applier.apply(contribution_made(tx_id="tx-b", amount="70"))

        async with session_factory() as session:
            total = await session.scalar(select(func.sum(Contribution.amount)))
        assert total == 150 * BASE_UNITS_PER_TOKEN

    @pytest.mark.asyncio
    async def test_applier_never_touches_running_total(self, applier, session_factory):
        """Test the project's running total is left to the database."""
        await applier.apply(project_created())
        await applier.apply(contribution_made(amount="10"))

        project = await load_project(session_factory)
        assert project.current_amount == 0

    @pytest.mark.asyncio
    async def test_concurrent_insert_is_reapplied(self, applier, session_factory):
        """Test a unique violation triggers one rollback and an idempotent reapply."""
        await applier.apply(project_created())
        await applier.apply(contribution_made())

        original = ContributionRepository.exists_tx
        calls = {"count": 0}

        async def racing_exists_tx(self, tx_id):
            # First check misses the row, as if another writer committed it
            # between the check and the insert.
            calls["count"] += 1
            if calls["count"] == 1:
                return False
            return await original(self, tx_id)

        with patch.object(ContributionRepository, "exists_tx", racing_exists_tx):
            outcome = await applier.apply(contribution_made())

        assert outcome == ApplyOutcome.DUPLICATE
        assert calls["count"] == 2
        assert await count_rows(session_factory, Contribution) == 1

    @pytest.mark.asyncio
    async def test_record_contribution(self, applier, session_factory):
        """Test the confirmation path records through the same handler."""
        await applier.apply(project_created())

        outcome = await applier.record_contribution(
            tx_id="tx-confirmed",
            project_id=1,
            contributor=BACKER,
            amount="3",
            block_height=500,
        )
        again = await applier.record_contribution(
            tx_id="tx-confirmed",
            project_id=1,
            contributor=BACKER,
            amount="3",
            block_height=500,
        )

        assert outcome == ApplyOutcome.APPLIED
        assert again == ApplyOutcome.DUPLICATE
        async with session_factory() as session:
            contribution = await ContributionRepository(session).get_by_tx_id("tx-confirmed")
        assert contribution.block_height == 500
        assert contribution.amount == 3 * BASE_UNITS_PER_TOKEN

    @pytest.mark.asyncio
    async def test_recorded_contribution_not_rewritten_by_sync(self, applier, session_factory):
        """Test a later chain event for a recorded transaction keeps the stored amount."""
        await applier.apply(project_created())
        await applier.record_contribution(
            tx_id="tx-confirmed",
            project_id=1,
            contributor=BACKER,
            amount="3",
            block_height=500,
        )

        outcome = await applier.apply(
            contribution_made(tx_id="tx-confirmed", amount="4", height=500)
        )

        assert outcome == ApplyOutcome.DUPLICATE
        async with session_factory() as session:
            contribution = await ContributionRepository(session).get_by_tx_id("tx-confirmed")
        assert contribution.amount == 3 * BASE_UNITS_PER_TOKEN


class TestStatusEvents:
    """Tests for FundsWithdrawn and RefundProcessed handling."""

    @pytest.mark.asyncio
    async def test_withdrawal_sets_withdrawn(self, applier, session_factory):
        """Test a withdrawal marks the project withdrawn, idempotently."""
        await applier.apply(project_created())
        await set_status(session_factory, ProjectStatus.FUNDED)

        first = await applier.apply(project_event(EventKind.FUNDS_WITHDRAWN))
        second = await applier.apply(project_event(EventKind.FUNDS_WITHDRAWN))

        assert first == ApplyOutcome.APPLIED
        assert second == ApplyOutcome.DUPLICATE
        project = await load_project(session_factory)
        assert project.status == ProjectStatus.WITHDRAWN.value

    @pytest.mark.asyncio
    async def test_withdrawal_of_unknown_project(self, applier):
        """Test a withdrawal for an unsynced project is a referential gap."""
        outcome = await applier.apply(project_event(EventKind.FUNDS_WITHDRAWN, project_id=9))
        assert outcome == ApplyOutcome.SKIPPED

    @pytest.mark.asyncio
    async def test_refund_expires_active_project(self, applier, session_factory):
        """Test a refund moves an active project to expired."""
        await applier.apply(project_created())

        outcome = await applier.apply(project_event(EventKind.REFUND_PROCESSED))

        assert outcome == ApplyOutcome.APPLIED
        project = await load_project(session_factory)
        assert project.status == ProjectStatus.EXPIRED.value

    @pytest.mark.asyncio
    async def test_refund_leaves_non_active_project(self, applier, session_factory):
        """Test a refund does not change a funded project."""
        await applier.apply(project_created())
        await set_status(session_factory, ProjectStatus.FUNDED)

        outcome = await applier.apply(project_event(EventKind.REFUND_PROCESSED))

        assert outcome == ApplyOutcome.DUPLICATE
        project = await load_project(session_factory)
        assert project.status == ProjectStatus.FUNDED.value

    @pytest.mark.asyncio
    async def test_withdrawn_never_regresses(self, applier, session_factory):
        """Test a withdrawn project keeps its status through later refunds."""
        await applier.apply(project_created())
        await applier.apply(project_event(EventKind.FUNDS_WITHDRAWN, height=30))
        await applier.apply(project_event(EventKind.REFUND_PROCESSED, height=31))

        project = await load_project(session_factory)
        assert project.status == ProjectStatus.WITHDRAWN.value

    @pytest.mark.asyncio
    async def test_refund_for_unknown_project(self, applier):
        """Test a refund for an unsynced project is skipped."""
        outcome = await applier.apply(project_event(EventKind.REFUND_PROCESSED, project_id=7))
        assert outcome == ApplyOutcome.SKIPPED


class TestUnknownKind:
    """Tests for events of unknown kinds."""

    @pytest.mark.asyncio
    async def test_unknown_kind_is_ignored(self, applier, caplog):
        """Test unknown kinds are logged and ignored without raising."""
        event = ChainEvent(kind="ProjectRenamed", transaction_id="tx-r", block_height=5)

        with caplog.at_level(logging.WARNING):
            outcome = await applier.apply(event)

        assert outcome == ApplyOutcome.IGNORED
        assert applier.stats.events_ignored == 1
        assert "ProjectRenamed" in caplog.text

    def test_handlers_registered_for_every_kind(self, applier):
        """Test each contract event kind has a handler."""
        for kind in EventKind:
            assert applier.get_handler(kind) is not None
            assert applier.get_handler(kind.value) is applier.get_handler(kind)
