"""Transaction status and confirmation API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from crowdsync.api.deps import Services
from crowdsync.api.v1.schemas import (
    ConfirmContributionRequest,
    ConfirmContributionResponse,
    TransactionStatusResponse,
)
from crowdsync.core.config import Settings, get_settings
from crowdsync.infrastructure.chain.client import ChainQueryError
from crowdsync.services.confirmation import (
    ConfirmationTimeoutError,
    TransactionAbortedError,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get("/{tx_id}/status", response_model=TransactionStatusResponse)
async def get_transaction_status(
    tx_id: str,
    services: Services,
    settings: Annotated[Settings, Depends(get_settings)],
) -> TransactionStatusResponse:
    """Get the current chain status of a transaction.

    Not-yet-indexed transactions report as pending.
    """
    try:
        result = await services.poller.get_status(tx_id)
    except ChainQueryError as e:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, f"Chain query failed: {e}")

    return TransactionStatusResponse(
        tx_id=tx_id,
        status=result.status.value,
        block_height=result.block_height,
        reason=result.reason,
        explorer_url=f"{settings.explorer_base_url}/tx/{tx_id}",
    )


@router.post("/{tx_id}/confirm", response_model=ConfirmContributionResponse)
async def confirm_contribution(
    tx_id: str,
    request: ConfirmContributionRequest,
    services: Services,
) -> ConfirmContributionResponse:
    """Wait for a contribution transaction to seal, then record it.

    Recording is idempotent: a transaction already picked up by the
    scheduled sync is reported with ``newly_recorded`` false.
    """
    try:
        recorded = await services.recorder.confirm_and_record(
            tx_id=tx_id,
            project_id=request.project_id,
            contributor=request.contributor,
            amount=request.amount,
            max_attempts=request.max_attempts,
        )
    except TransactionAbortedError as e:
        raise HTTPException(status.HTTP_409_CONFLICT, e.reason)
    except ConfirmationTimeoutError as e:
        raise HTTPException(status.HTTP_504_GATEWAY_TIMEOUT, str(e))
    except ChainQueryError as e:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, f"Chain query failed: {e}")

    return ConfirmContributionResponse(
        tx_id=recorded.tx_id,
        project_id=recorded.project_id,
        block_height=recorded.block_height,
        outcome=recorded.outcome.value,
        newly_recorded=recorded.newly_recorded,
        attempts=recorded.attempts,
    )
