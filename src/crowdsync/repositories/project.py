"""Repository for project operations."""

from datetime import datetime
from typing import Sequence

from sqlalchemy import and_, select, update

from crowdsync.models.project import Project, ProjectStatus
from crowdsync.repositories.base import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    """Repository for Project database operations.

    Handles chain-keyed lookups and the bulk status transitions used by
    scheduled re-evaluation.
    """

    model = Project

    async def get_by_contract_id(self, contract_id: int) -> Project | None:
        """Get project by on-chain id.

        @param contract_id - On-chain project id
        @returns Project or None
        """
        return await self.get_one_by_filter(contract_id=contract_id)

    async def exists_contract_id(self, contract_id: int) -> bool:
        """Check if a project with this on-chain id was already synced."""
        return await self.exists(contract_id=contract_id)

    async def set_status(self, project: Project, status: ProjectStatus) -> None:
        """Overwrite project status.

        @param project - Loaded project
        @param status - New status
        """
        project.status = status.value
        await self.session.flush()

    async def _transition_active(
        self, condition, status: ProjectStatus
    ) -> Sequence[int]:
        """Move active projects matching ``condition`` to ``status``.

        @returns On-chain ids of the projects moved
        """
        active = self.model.status == ProjectStatus.ACTIVE.value
        result = await self.session.execute(
            select(self.model.contract_id).where(and_(active, condition))
        )
        contract_ids = result.scalars().all()
        if not contract_ids:
            return []

        await self.session.execute(
            update(self.model)
            .where(and_(active, self.model.contract_id.in_(contract_ids)))
            .values(status=status.value)
        )
        await self.session.flush()
        return contract_ids

    async def mark_goal_reached_funded(self) -> Sequence[int]:
        """Mark active projects whose raised amount reached the goal as funded."""
        return await self._transition_active(
            self.model.current_amount >= self.model.goal_amount,
            ProjectStatus.FUNDED,
        )

    async def mark_past_deadline_expired(self, now: datetime) -> Sequence[int]:
        """Mark active projects past deadline and below goal as expired."""
        return await self._transition_active(
            and_(
                self.model.deadline < now,
                self.model.current_amount < self.model.goal_amount,
            ),
            ProjectStatus.EXPIRED,
        )
