"""
AllerScan Backend — Health Check Route
========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks the database (SELECT 1) and Gemini (circuit state, then
       list_models) and reports an aggregate status.

Status levels:
    - healthy:   database and Gemini both fine
    - degraded:  database fine, Gemini unavailable / unconfigured / circuit open
                 (family management and history still work)
    - unhealthy: database unreachable
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from allerscan import __version__
from allerscan.config import settings
from allerscan.database import engine
from allerscan.schemas.common import HealthResponse
from allerscan.services.gemini_service import gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


async def check_database() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Health check: database unreachable: %s", str(e))
        return "disconnected"
    return "connected"


async def check_gemini() -> str:
    if gemini_service.circuit_breaker.state == gemini_service.circuit_breaker.OPEN:
        return "circuit_open"
    if not settings.gemini_configured:
        return "not_configured"
    if await gemini_service.health_check():
        return "available"
    return "unavailable"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    db_status = await check_database()
    gemini_status = await check_gemini()

    if db_status != "connected":
        overall = "unhealthy"
    elif gemini_status != "available":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        gemini=gemini_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
