"""Per-process wiring of the reconciliation services."""

import logging
from dataclasses import dataclass

import redis.asyncio as aioredis

from crowdsync.core.config import Settings, get_settings
from crowdsync.infrastructure.chain.client import ChainQueryClient, FlowAccessClient
from crowdsync.infrastructure.database.session import SessionFactory
from crowdsync.services.confirmation.poller import ConfirmationPoller
from crowdsync.services.contribution.recorder import ContributionRecorder
from crowdsync.services.projects.status import ProjectStatusService
from crowdsync.services.reconciliation.applier import EventApplier
from crowdsync.services.reconciliation.conflict import ChainWinsResolver
from crowdsync.services.reconciliation.cursor import CursorStore
from crowdsync.services.reconciliation.scheduler import (
    ReconciliationScheduler,
    SchedulerConfig,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Collaborators built for one process."""

    client: ChainQueryClient
    cursor_store: CursorStore
    applier: EventApplier
    scheduler: ReconciliationScheduler
    poller: ConfirmationPoller
    recorder: ContributionRecorder
    status_service: ProjectStatusService

    async def close(self) -> None:
        """Stop the scheduler and release network clients."""
        await self.scheduler.stop()
        await self.client.close()
        redis_client = self.cursor_store.redis_client
        if redis_client is not None:
            await redis_client.aclose()


def build_cursor_store(settings: Settings | None = None) -> CursorStore:
    """Create the cursor store for the configured backend."""
    settings = settings or get_settings()
    backend = settings.sync_cursor_backend

    if backend == "redis":
        redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
        # File stays as the fallback when Redis is unreachable
        return CursorStore(
            cursor_path=settings.sync_cursor_path,
            redis_client=redis_client,
            redis_key=settings.sync_cursor_redis_key,
            start_height=settings.sync_start_height,
        )
    if backend == "file":
        return CursorStore(
            cursor_path=settings.sync_cursor_path,
            start_height=settings.sync_start_height,
        )
    return CursorStore(start_height=settings.sync_start_height)


def build_services(
    session_factory: SessionFactory,
    settings: Settings | None = None,
    client: ChainQueryClient | None = None,
    cursor_store: CursorStore | None = None,
) -> ServiceContainer:
    """Build every reconciliation service from settings.

    Args:
        session_factory: Factory for database sessions
        settings: Settings override
        client: Chain client override
        cursor_store: Cursor store override

    Returns:
        Wired services
    """
    settings = settings or get_settings()
    client = client or FlowAccessClient(settings=settings)
    cursor_store = cursor_store or build_cursor_store(settings)

    applier = EventApplier(session_factory, resolver=ChainWinsResolver())
    scheduler = ReconciliationScheduler(
        client=client,
        applier=applier,
        cursor_store=cursor_store,
        config=SchedulerConfig(
            poll_interval=settings.sync_poll_interval,
            max_retries=settings.sync_max_retries,
            base_delay=settings.sync_base_delay,
        ),
    )
    poller = ConfirmationPoller(
        client=client,
        poll_interval=settings.confirmation_poll_interval,
        max_attempts=settings.confirmation_max_attempts,
    )

    logger.info(
        f"Built reconciliation services (network={settings.flow_network}, "
        f"cursor backend={settings.sync_cursor_backend})"
    )
    return ServiceContainer(
        client=client,
        cursor_store=cursor_store,
        applier=applier,
        scheduler=scheduler,
        poller=poller,
        recorder=ContributionRecorder(poller, applier),
        status_service=ProjectStatusService(session_factory),
    )
