"""Repository layer for database operations.

This module provides async repository implementations using SQLAlchemy 2.x.
All repositories follow the Repository pattern with consistent CRUD operations.
"""

from crowdsync.repositories.base import BaseRepository
from crowdsync.repositories.contribution import ContributionRepository
from crowdsync.repositories.project import ProjectRepository
from crowdsync.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "ContributionRepository",
    "ProjectRepository",
    "UserRepository",
]
