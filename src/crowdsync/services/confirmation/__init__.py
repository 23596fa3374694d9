"""Transaction confirmation module."""

from crowdsync.services.confirmation.poller import (
    ConfirmationError,
    ConfirmationPoller,
    ConfirmationResult,
    ConfirmationTimeoutError,
    PollState,
    PollStatus,
    TransactionAbortedError,
)

__all__ = [
    "ConfirmationError",
    "ConfirmationPoller",
    "ConfirmationResult",
    "ConfirmationTimeoutError",
    "PollState",
    "PollStatus",
    "TransactionAbortedError",
]
