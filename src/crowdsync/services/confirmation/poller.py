"""Transaction confirmation polling.

Waits for a submitted transaction to reach a terminal state on chain. The
poller never writes to the database; callers decide what to record.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from crowdsync.infrastructure.chain.client import ChainQueryClient, ChainQueryError
from crowdsync.infrastructure.chain.events import ChainTxStatus

logger = logging.getLogger(__name__)


class PollStatus(str, Enum):
    """Confirmation poll state."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ABORTED = "aborted"
    TIMED_OUT = "timed_out"


@dataclass
class PollState:
    """Mutable state of one confirmation wait."""

    tx_id: str
    attempts: int = 0
    status: PollStatus = PollStatus.PENDING
    last_error: str = ""
    started_at: datetime | None = None


@dataclass
class ConfirmationResult:
    """A transaction that reached Success."""

    tx_id: str
    status: PollStatus
    block_height: int | None
    attempts: int


class ConfirmationError(Exception):
    """Base class for transactions that did not confirm."""

    def __init__(self, tx_id: str, message: str, attempts: int = 0):
        self.tx_id = tx_id
        self.attempts = attempts
        super().__init__(message)


class TransactionAbortedError(ConfirmationError):
    """The transaction reached a terminal failure on chain."""

    def __init__(self, tx_id: str, reason: str | None, attempts: int = 0):
        self.reason = reason or "Transaction aborted"
        super().__init__(tx_id, f"Transaction {tx_id} aborted: {self.reason}", attempts)


class ConfirmationTimeoutError(ConfirmationError):
    """The transaction stayed pending for every allowed poll."""

    def __init__(self, tx_id: str, attempts: int):
        super().__init__(
            tx_id,
            f"Transaction {tx_id} not confirmed after {attempts} attempts",
            attempts,
        )


class ConfirmationPoller:
    """Polls a transaction's status at a fixed interval until it is terminal.

    Each call owns its own ``PollState``, so one poller instance can serve
    many concurrent waits.
    """

    def __init__(
        self,
        client: ChainQueryClient,
        poll_interval: float = 2.0,
        max_attempts: int = 30,
    ):
        """Initialize confirmation poller.

        Args:
            client: Chain query client
            poll_interval: Seconds between polls
            max_attempts: Default number of polls before timing out
        """
        self.client = client
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    async def wait_for_confirmation(
        self, tx_id: str, max_attempts: int | None = None
    ) -> ConfirmationResult:
        """Wait until ``tx_id`` succeeds.

        Args:
            tx_id: Transaction id
            max_attempts: Poll budget, defaults to the poller's

        Returns:
            Confirmation with the sealed block height

        Raises:
            TransactionAbortedError: If the transaction failed on chain
            ConfirmationTimeoutError: If no terminal state within the budget
        """
        budget = max_attempts if max_attempts is not None else self.max_attempts
        state = PollState(tx_id=tx_id, started_at=datetime.now(timezone.utc))

        while state.attempts < budget:
            state.attempts += 1

            try:
                result = await self.client.get_transaction_status(tx_id)
            except ChainQueryError as e:
                # Counts as a pending poll
                state.last_error = str(e)
                logger.warning(
                    f"Status query for {tx_id} failed (attempt {state.attempts}/{budget}): {e}"
                )
            else:
                if result.status == ChainTxStatus.SUCCESS:
                    state.status = PollStatus.CONFIRMED
                    logger.info(
                        f"Transaction {tx_id} confirmed",
                        extra={
                            "tx_id": tx_id,
                            "block_height": result.block_height,
                            "attempts": state.attempts,
                        },
                    )
                    return ConfirmationResult(
                        tx_id=tx_id,
                        status=PollStatus.CONFIRMED,
                        block_height=result.block_height,
                        attempts=state.attempts,
                    )

                if result.status == ChainTxStatus.ABORTED:
                    state.status = PollStatus.ABORTED
                    logger.warning(
                        f"Transaction {tx_id} aborted: {result.reason}",
                        extra={"tx_id": tx_id, "attempts": state.attempts},
                    )
                    raise TransactionAbortedError(tx_id, result.reason, state.attempts)

                logger.debug(f"Transaction {tx_id} pending (attempt {state.attempts}/{budget})")

            if state.attempts < budget:
                await asyncio.sleep(self.poll_interval)

        state.status = PollStatus.TIMED_OUT
        logger.warning(
            f"Transaction {tx_id} not confirmed after {state.attempts} attempts",
            extra={"tx_id": tx_id, "attempts": state.attempts},
        )
        raise ConfirmationTimeoutError(tx_id, state.attempts)

    async def get_status(self, tx_id: str):
        """Single status query without waiting."""
        return await self.client.get_transaction_status(tx_id)
