"""Health check endpoint with credential store connectivity check."""

from typing import Annotated

from fastapi import APIRouter, Depends

from lexauth import __version__
from lexauth.core.database import check_db_connected
from lexauth.schemas.health import HealthResponse
from lexauth.services.container import ServiceContainer, get_services

router = APIRouter()


@router.get("", response_model=HealthResponse)
def get_health(
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> HealthResponse:
    """
    Return service health status and database connectivity.
    Used by load balancers and monitoring.
    """
    with services.session_factory() as db:
        db_status = "connected" if check_db_connected(db) else "disconnected"

    return HealthResponse(
        status="ok",
        environment=services.settings.APP_ENV,
        version=__version__,
        database=db_status,
    )
