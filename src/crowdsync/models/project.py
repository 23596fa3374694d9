"""Project model."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from crowdsync.models.base import Base, TimestampMixin


class ProjectStatus(str, Enum):
    """Project lifecycle status.

    ACTIVE is the only non-terminal status. FUNDED and EXPIRED may still be
    overwritten by an on-chain withdrawal; nothing ever returns to ACTIVE.
    """

    ACTIVE = "active"
    FUNDED = "funded"
    EXPIRED = "expired"
    WITHDRAWN = "withdrawn"

    def can_transition_to(self, target: "ProjectStatus") -> bool:
        """Check whether moving from this status to ``target`` is allowed."""
        if target == self:
            return True
        if target == ProjectStatus.ACTIVE:
            return False
        if self == ProjectStatus.ACTIVE:
            return True
        return target == ProjectStatus.WITHDRAWN


class Project(Base, TimestampMixin):
    """Crowdfunding project mirrored from the chain."""

    __tablename__ = "projects"

    # Primary key
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # On-chain identity
    contract_id: Mapped[int] = mapped_column(
        BigInteger, unique=True, nullable=False, index=True
    )

    # Descriptive
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    creator_address: Mapped[str] = mapped_column(
        String(100), ForeignKey("users.wallet_address"), nullable=False, index=True
    )

    # Amounts in base units (10^-8 token)
    goal_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    contributor_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Lifecycle
    deadline: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProjectStatus.ACTIVE.value, index=True
    )

    __table_args__ = (
        CheckConstraint("goal_amount > 0", name="ck_projects_goal_positive"),
        CheckConstraint(
            "status IN ('active', 'funded', 'expired', 'withdrawn')",
            name="ck_projects_status",
        ),
    )

    @property
    def status_enum(self) -> ProjectStatus:
        """Status as a ProjectStatus member."""
        return ProjectStatus(self.status)
