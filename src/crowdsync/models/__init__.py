"""Database models for crowdsync."""

from crowdsync.models.base import Base, TimestampMixin
from crowdsync.models.contribution import Contribution
from crowdsync.models.project import Project, ProjectStatus
from crowdsync.models.user import User

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Domain models
    "User",
    "Project",
    "ProjectStatus",
    "Contribution",
]
