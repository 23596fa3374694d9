"""Time-driven project status re-evaluation."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from crowdsync.infrastructure.database.session import SessionFactory
from crowdsync.repositories import ProjectRepository

logger = logging.getLogger(__name__)


@dataclass
class StatusUpdateReport:
    """Projects moved by one re-evaluation run."""

    funded: list[int] = field(default_factory=list)
    expired: list[int] = field(default_factory=list)
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total(self) -> int:
        """Number of projects moved."""
        return len(self.funded) + len(self.expired)


class ProjectStatusService:
    """Moves active projects to funded or expired.

    Only active projects are touched, so repeated runs are harmless and a
    project never returns to an earlier status.
    """

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def update_expired_projects(
        self, now: datetime | None = None
    ) -> StatusUpdateReport:
        """Re-evaluate active projects against goal and deadline.

        Args:
            now: Evaluation time, defaults to the current UTC time

        Returns:
            On-chain ids of the projects moved
        """
        now = now or datetime.now(timezone.utc)
        report = StatusUpdateReport(evaluated_at=now)

        async with self.session_factory() as session:
            projects = ProjectRepository(session)
            # Funded first: a project that reached its goal is funded even
            # when its deadline has passed.
            report.funded = list(await projects.mark_goal_reached_funded())
            report.expired = list(await projects.mark_past_deadline_expired(now))
            await session.commit()

        logger.info(
            f"Project status update: {len(report.funded)} funded, "
            f"{len(report.expired)} expired",
            extra={"funded": report.funded, "expired": report.expired},
        )
        return report
