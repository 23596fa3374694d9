"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from crowdsync.core.config import Settings, get_settings
from crowdsync.services.factory import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    """Services built by the application lifespan.

    Raises:
        HTTPException: 503 if the services were not configured
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reconciliation services are not configured",
        )
    return services


Services = Annotated[ServiceContainer, Depends(get_services)]


def verify_cron_secret(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>`` when a secret is set."""
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
