"""Project lifecycle module."""

from crowdsync.services.projects.status import ProjectStatusService, StatusUpdateReport

__all__ = ["ProjectStatusService", "StatusUpdateReport"]
