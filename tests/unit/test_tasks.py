"""Tests for Celery tasks."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from crowdsync.core.celery_app import celery_app
from crowdsync.infrastructure.chain.events import EventKind
from crowdsync.services.projects import StatusUpdateReport
from crowdsync.services.reconciliation import StreamSyncResult
from crowdsync.tasks.reconciliation_tasks import (
    run_reconciliation_cycle,
    update_expired_projects,
)

TASKS = "crowdsync.tasks.reconciliation_tasks"


@asynccontextmanager
async def fake_session_factory():
    yield MagicMock()


class TestBeatSchedule:
    """Tests for the periodic task schedule."""

    def test_status_update_hourly(self):
        """Test project status re-evaluation runs at the top of each hour."""
        entry = celery_app.conf.beat_schedule["update-expired-projects"]
        assert entry["task"] == f"{TASKS}.update_expired_projects"
        assert entry["schedule"].minute == {0}
        assert len(entry["schedule"].hour) == 24


class TestUpdateExpiredProjectsTask:
    """Tests for update_expired_projects."""

    def test_runs_status_service(self):
        """Test the task delegates to the status service."""
        service = MagicMock()
        service.update_expired_projects = AsyncMock(
            return_value=StatusUpdateReport(funded=[1], expired=[2, 3])
        )

        with patch(f"{TASKS}.task_session_factory", fake_session_factory), patch(
            f"{TASKS}.ProjectStatusService", return_value=service
        ):
            result = update_expired_projects.run(now="2026-01-01T00:00:00+00:00")

        assert result["status"] == "success"
        assert result["funded"] == [1]
        assert result["expired"] == [2, 3]
        service.update_expired_projects.assert_awaited_once_with(
            datetime(2026, 1, 1, tzinfo=timezone.utc)
        )


class TestRunReconciliationCycleTask:
    """Tests for run_reconciliation_cycle."""

    def test_runs_one_cycle_and_closes(self):
        """Test the task runs every stream once and releases clients."""
        services = MagicMock()
        services.scheduler.sync_all = AsyncMock(return_value=[
            StreamSyncResult(kind=EventKind.PROJECT_CREATED, fetched=1, applied=1, cursor=9),
        ])
        services.close = AsyncMock()

        with patch(f"{TASKS}.task_session_factory", fake_session_factory), patch(
            f"{TASKS}.build_services", return_value=services
        ):
            result = run_reconciliation_cycle.run()

        assert result["streams"]["ProjectCreated"]["cursor"] == 9
        services.close.assert_awaited_once()
