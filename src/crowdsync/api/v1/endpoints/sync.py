"""Reconciliation control API endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, status

from crowdsync.api.deps import Services
from crowdsync.api.v1.schemas import (
    StreamResult,
    SyncAction,
    SyncActionRequest,
    SyncActionResponse,
    SyncStatusResponse,
)
from crowdsync.infrastructure.chain.client import ChainQueryError
from crowdsync.services.reconciliation import StreamSyncError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["Sync"])


@router.get("", response_model=SyncStatusResponse)
async def get_sync_status(services: Services) -> SyncStatusResponse:
    """Get scheduler state, statistics and stream cursors."""
    return SyncStatusResponse(**await services.scheduler.get_status())


@router.post("", response_model=SyncActionResponse)
async def control_sync(
    services: Services,
    background_tasks: BackgroundTasks,
    request: SyncActionRequest | None = None,
) -> SyncActionResponse:
    """Start or stop the scheduler, or run one reconciliation cycle now.

    ``start`` returns immediately; the first cycle runs in the background.
    """
    scheduler = services.scheduler
    action = request.action if request else SyncAction.SYNC

    if action == SyncAction.START:
        if scheduler.is_running():
            return SyncActionResponse(message="Sync service already running", running=True)
        background_tasks.add_task(scheduler.start)
        return SyncActionResponse(message="Sync service started", running=True)

    if action == SyncAction.STOP:
        await scheduler.stop()
        return SyncActionResponse(message="Sync service stopped", running=False)

    try:
        results = await scheduler.sync_all()
    except ChainQueryError as e:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, f"Chain query failed: {e}")
    except StreamSyncError as e:
        logger.error(f"Manual sync failed: {e}")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    return SyncActionResponse(
        message="Sync completed successfully",
        running=scheduler.is_running(),
        streams={
            r.kind.value: StreamResult(
                fetched=r.fetched,
                applied=r.applied,
                duplicate=r.duplicate,
                skipped=r.skipped,
                ignored=r.ignored,
                cursor=r.cursor,
            )
            for r in results
        },
    )
