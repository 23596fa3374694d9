"""Repository for contribution records."""

import uuid
from typing import Sequence

from sqlalchemy import desc, func, select

from crowdsync.models.contribution import Contribution
from crowdsync.repositories.base import BaseRepository


class ContributionRepository(BaseRepository[Contribution]):
    """Repository for Contribution database operations."""

    model = Contribution

    async def get_by_tx_id(self, tx_id: str) -> Contribution | None:
        """Get contribution by transaction id.

        @param tx_id - Chain transaction id
        @returns Contribution or None
        """
        return await self.get_one_by_filter(tx_id=tx_id)

    async def exists_tx(self, tx_id: str) -> bool:
        """Check if a contribution for this transaction exists (deduplication)."""
        return await self.exists(tx_id=tx_id)

    async def get_by_project(
        self, project_id: uuid.UUID, *, limit: int = 100
    ) -> Sequence[Contribution]:
        """Get a project's contributions, newest block first."""
        stmt = (
            select(self.model)
            .where(self.model.project_id == project_id)
            .order_by(desc(self.model.block_height))
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def total_for_project(self, project_id: uuid.UUID) -> int:
        """Sum of recorded contribution amounts for a project."""
        stmt = select(func.coalesce(func.sum(self.model.amount), 0)).where(
            self.model.project_id == project_id
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)
