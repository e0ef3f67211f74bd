"""
Cinedex Backend: Health Check Route
=====================================

What:  GET /v1/healthcheck for load balancers and uptime probes.
How:   Answers from process state only. It never touches the database, so a
       slow store cannot make the instance look dead.
"""

from fastapi import APIRouter

from cinedex import __version__
from cinedex.config import settings
from cinedex.schemas.common import HealthResponse, SystemInfo

router = APIRouter(tags=["Health"])


@router.get(
    "/v1/healthcheck",
    response_model=HealthResponse,
    summary="Service health check",
)
async def healthcheck() -> HealthResponse:
    return HealthResponse(
        status="available",
        system_info=SystemInfo(environment=settings.env, version=__version__),
    )
