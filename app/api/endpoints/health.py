"""Health check endpoints."""

import resource
import sys
import time

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.config import settings
from app.core.redis_client import check_redis_connection
from app.database import check_database_connection

router = APIRouter()

# Process start, for uptime reporting
STARTED_AT = time.monotonic()


class MemoryUsage(BaseModel):
    """Peak resident memory of the process."""

    max_rss_mb: float


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    uptime_seconds: float
    memory: MemoryUsage
    database: str
    redis: str


class ProbeResponse(BaseModel):
    """Liveness/readiness probe response model."""

    status: str


def _memory_usage() -> MemoryUsage:
    max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Bytes on macOS, kilobytes elsewhere
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return MemoryUsage(max_rss_mb=round(max_rss / divisor, 2))


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Service health",
)
async def health_check() -> HealthResponse:
    """
    Health check with uptime, memory and dependency status.

    Returns:
        Health status; "degraded" when the database or Redis is unreachable
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()

    return HealthResponse(
        status="healthy" if db_healthy and redis_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        uptime_seconds=round(time.monotonic() - STARTED_AT, 3),
        memory=_memory_usage(),
        database="healthy" if db_healthy else "unhealthy",
        redis="healthy" if redis_healthy else "unhealthy",
    )


@router.get(
    "/health/live",
    response_model=ProbeResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Liveness probe",
)
async def liveness() -> ProbeResponse:
    """The process is up and serving requests."""
    return ProbeResponse(status="alive")


@router.get(
    "/health/ready",
    response_model=ProbeResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Readiness probe",
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ProbeResponse}},
)
async def readiness() -> ProbeResponse | JSONResponse:
    """Ready once the database answers; 503 otherwise."""
    if not await check_database_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready"},
        )
    return ProbeResponse(status="ready")
