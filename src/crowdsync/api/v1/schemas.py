"""API v1 request and response schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SyncAction(str, Enum):
    """Scheduler control action."""

    START = "start"
    STOP = "stop"
    SYNC = "sync"


class SyncActionRequest(BaseModel):
    """Scheduler control request."""

    action: SyncAction = Field(SyncAction.SYNC, description="Action to perform")


class StreamResult(BaseModel):
    """Result of one stream pass."""

    fetched: int
    applied: int
    duplicate: int
    skipped: int
    ignored: int
    cursor: int


class SyncActionResponse(BaseModel):
    """Scheduler control response."""

    message: str
    running: bool
    streams: dict[str, StreamResult] = Field(default_factory=dict)


class TransactionStatusResponse(BaseModel):
    """Current chain status of a transaction."""

    tx_id: str
    status: str = Field(..., description="pending, success or aborted")
    block_height: int | None = None
    reason: str | None = None
    explorer_url: str


class ConfirmContributionRequest(BaseModel):
    """Contribution to confirm and record."""

    project_id: int = Field(..., ge=0, description="On-chain project id")
    contributor: str = Field(..., min_length=1, description="Contributor wallet address")
    amount: Decimal = Field(..., gt=0, description="Amount in tokens")
    max_attempts: int | None = Field(
        None, ge=1, le=300, description="Poll budget override"
    )


class ConfirmContributionResponse(BaseModel):
    """Recorded contribution."""

    tx_id: str
    project_id: int
    block_height: int
    outcome: str
    newly_recorded: bool
    attempts: int


class StatusUpdateResponse(BaseModel):
    """Project status re-evaluation result."""

    success: bool = True
    message: str
    funded: list[int]
    expired: list[int]
    timestamp: datetime


class SyncStatusResponse(BaseModel):
    """Scheduler status."""

    state: str
    running: bool
    poll_interval: float
    cycles_completed: int
    cycles_failed: int
    retries: int
    last_error: str
    last_cycle_at: str | None
    started_at: str | None
    cursors: dict[str, int]
    streams: dict[str, Any]
