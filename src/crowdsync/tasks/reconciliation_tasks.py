"""Reconciliation and project maintenance tasks."""

from datetime import datetime
from typing import Any

from crowdsync.core.config import get_settings
from crowdsync.services.factory import build_services
from crowdsync.services.projects import ProjectStatusService
from crowdsync.tasks.base import async_task, get_task_logger, task_session_factory

logger = get_task_logger("reconciliation_tasks")


@async_task(queue="maintenance")
async def update_expired_projects(self, now: str | None = None) -> dict[str, Any]:
    """Move active projects to funded or expired.

    Scheduled hourly by beat.

    @param now - Optional ISO-8601 evaluation time
    @returns Projects moved per status
    """
    evaluated_at = datetime.fromisoformat(now) if now else None

    async with task_session_factory() as session_factory:
        report = await ProjectStatusService(session_factory).update_expired_projects(
            evaluated_at
        )

    logger.info(
        f"Updated project statuses: {len(report.funded)} funded, "
        f"{len(report.expired)} expired"
    )
    return {
        "status": "success",
        "funded": report.funded,
        "expired": report.expired,
        "evaluated_at": report.evaluated_at.isoformat(),
    }


@async_task(queue="sync", max_retries=0)
async def run_reconciliation_cycle(self) -> dict[str, Any]:
    """Run every stream pass once outside the API process.

    Failures propagate so Celery records them; the next cycle resumes from
    the persisted cursors.

    @returns Per-stream results
    """
    settings = get_settings()

    async with task_session_factory() as session_factory:
        services = build_services(session_factory, settings=settings)
        try:
            results = await services.scheduler.sync_all()
        finally:
            await services.close()

    logger.info(f"Reconciliation cycle finished for {len(results)} streams")
    return {
        "status": "success",
        "streams": {
            r.kind.value: {
                "fetched": r.fetched,
                "applied": r.applied,
                "duplicate": r.duplicate,
                "skipped": r.skipped,
                "cursor": r.cursor,
            }
            for r in results
        },
    }
