"""Contribution recording module."""

from crowdsync.services.contribution.recorder import (
    ContributionRecorder,
    RecordedContribution,
)

__all__ = ["ContributionRecorder", "RecordedContribution"]
