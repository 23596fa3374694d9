"""Confirm-then-record path for contributions submitted through the API."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from crowdsync.services.confirmation.poller import ConfirmationPoller
from crowdsync.services.reconciliation.applier import EventApplier
from crowdsync.services.reconciliation.handlers import ApplyOutcome

logger = logging.getLogger(__name__)


@dataclass
class RecordedContribution:
    """A confirmed contribution and how the store took it."""

    tx_id: str
    project_id: int
    block_height: int
    outcome: ApplyOutcome
    attempts: int

    @property
    def newly_recorded(self) -> bool:
        """False when the scheduled sync recorded the transaction first."""
        return self.outcome == ApplyOutcome.APPLIED


class ContributionRecorder:
    """Waits for a contribution transaction to seal, then records it.

    Shares the ContributionMade handler with the scheduler, so a transaction
    seen by both paths is stored once.
    """

    def __init__(self, poller: ConfirmationPoller, applier: EventApplier):
        self.poller = poller
        self.applier = applier

    async def confirm_and_record(
        self,
        tx_id: str,
        project_id: int,
        contributor: str,
        amount: Decimal | str,
        max_attempts: int | None = None,
    ) -> RecordedContribution:
        """Confirm ``tx_id`` on chain and record the contribution.

        Only the transaction's success is checked on chain. ``project_id``,
        ``contributor`` and ``amount`` are stored as given by the caller, and
        a stored contribution is never rewritten, so a later ContributionMade
        event for the same transaction does not correct them.

        Args:
            tx_id: Contribution transaction id
            project_id: On-chain project id
            contributor: Contributor wallet address
            amount: Amount in tokens
            max_attempts: Poll budget override

        Returns:
            Recorded contribution

        Raises:
            TransactionAbortedError: If the transaction failed on chain
            ConfirmationTimeoutError: If it did not seal in time
        """
        confirmation = await self.poller.wait_for_confirmation(tx_id, max_attempts)
        block_height = confirmation.block_height or 0

        outcome = await self.applier.record_contribution(
            tx_id=tx_id,
            project_id=project_id,
            contributor=contributor,
            amount=amount,
            block_height=block_height,
        )

        if outcome == ApplyOutcome.DUPLICATE:
            logger.info(f"Contribution {tx_id} was already recorded")
        elif outcome == ApplyOutcome.SKIPPED:
            logger.warning(
                f"Contribution {tx_id} confirmed but project {project_id} is not synced yet"
            )

        return RecordedContribution(
            tx_id=tx_id,
            project_id=project_id,
            block_height=block_height,
            outcome=outcome,
            attempts=confirmation.attempts,
        )
