"""
Health check service.

Checks database connectivity and tracks uptime.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings

logger = logging.getLogger(__name__)

# Captured at module load to compute uptime
_start_time = time.monotonic()


class ComponentHealth(BaseModel):
    name: str
    status: str  # "ok" | "error"
    message: Optional[str] = None
    response_time_ms: Optional[float] = None


class HealthResponse(BaseModel):
    status: str  # "healthy" | "unhealthy"
    app: str
    version: str
    environment: str
    uptime_seconds: float
    checks: list[ComponentHealth]
    timestamp: str


async def check_database(db: AsyncSession) -> ComponentHealth:
    """Check database connectivity by running SELECT 1."""
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
        elapsed = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            name="database",
            status="ok",
            response_time_ms=round(elapsed, 1),
        )
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        logger.warning(f"Database health check failed: {e}")
        return ComponentHealth(
            name="database",
            status="error",
            message="Database unreachable",
            response_time_ms=round(elapsed, 1),
        )


async def run_health_checks(db: AsyncSession) -> HealthResponse:
    """Run all health checks and return aggregated status."""
    checks = [await check_database(db)]
    overall = "unhealthy" if any(c.status == "error" for c in checks) else "healthy"

    return HealthResponse(
        status=overall,
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        uptime_seconds=round(time.monotonic() - _start_time, 1),
        checks=checks,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
