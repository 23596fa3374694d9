"""FastAPI application factory and main entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crowdsync import __version__
from crowdsync.api.v1 import api_router
from crowdsync.core.config import get_settings
from crowdsync.core.logging import configure_logging
from crowdsync.infrastructure.database import create_async_db_engine, create_session_factory
from crowdsync.services.factory import build_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager for startup/shutdown events."""
    # Startup
    settings = get_settings()
    configure_logging(settings)
    app.state.settings = settings

    engine = create_async_db_engine(settings)
    services = build_services(create_session_factory(engine), settings=settings)
    app.state.services = services

    if settings.sync_autostart:
        # First cycle must not delay startup
        app.state.sync_start_task = asyncio.create_task(services.scheduler.start())

    yield

    # Shutdown
    start_task = getattr(app.state, "sync_start_task", None)
    if start_task is not None and not start_task.done():
        await services.scheduler.stop()
        await start_task
    await services.close()
    await engine.dispose()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Crowdfunding chain reconciliation API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    register_routes(app)

    return app


def register_routes(app: FastAPI) -> None:
    """Register all application routes."""
    settings = get_settings()

    # Include API router
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        services = getattr(app.state, "services", None)
        return {
            "status": "healthy",
            "version": __version__,
            "sync_running": bool(services and services.scheduler.is_running()),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


# Create application instance
app = create_app()
