"""
Travel Log API — Health Check & API Index Routes
==================================================

What:  GET /health for load balancer and container probes, and GET /api,
       which tells clients which version of the API they are talking to.

Status levels:
    healthy    the database answers SELECT 1
    unhealthy  it does not; the response is still 200 so that the body,
               which says what is wrong, reaches the monitoring system
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from travellog import __version__
from travellog import database
from travellog.schemas.common import ApiIndexResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/api",
    response_model=ApiIndexResponse,
    summary="API version",
)
async def api_index() -> ApiIndexResponse:
    return ApiIndexResponse(version=__version__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
