"""
User API — Health Check Route
==============================

What:  Health check endpoint for monitoring and load balancer checks.
Why:   Load balancers route away from instances whose database is unreachable.
How:   Runs `SELECT 1`; 200 "ok" when it succeeds, 503 "degraded" otherwise.
       Either way the body is a success envelope so monitors can read it.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Response

from userapi.database import check_database_health
from userapi.schemas.common import HealthStatus, ServicesStatus
from userapi.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Initialized once when the module loads
_start_time = time.time()


@router.get(
    "/health",
    summary="Service health check",
    description="Reports database connectivity and process uptime.",
)
async def health_check() -> Response:
    db_ok = await check_database_health()
    if not db_ok:
        logger.warning("Health check: database unreachable")

    status = HealthStatus(
        status="ok" if db_ok else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.time() - _start_time, 2),
        services=ServicesStatus(database="connected" if db_ok else "disconnected"),
    )
    return success_response(status, status_code=200 if db_ok else 503)
