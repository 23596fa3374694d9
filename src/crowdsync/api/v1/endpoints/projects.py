"""Project maintenance API endpoints."""

from fastapi import APIRouter, Depends

from crowdsync.api.deps import Services, verify_cron_secret
from crowdsync.api.v1.schemas import StatusUpdateResponse

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.api_route(
    "/update-expired",
    methods=["GET", "POST"],
    response_model=StatusUpdateResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def update_expired_projects(services: Services) -> StatusUpdateResponse:
    """Move active projects to funded or expired.

    Called by an external cron; requires the cron bearer secret when one is
    configured.
    """
    report = await services.status_service.update_expired_projects()
    return StatusUpdateResponse(
        message=(
            f"Updated {len(report.funded)} funded and "
            f"{len(report.expired)} expired projects"
        ),
        funded=report.funded,
        expired=report.expired,
        timestamp=report.evaluated_at,
    )
