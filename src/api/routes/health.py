"""Liveness and readiness probes."""

import asyncio
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from infrastructure.database.session import get_async_session

logger = structlog.get_logger()

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str
    timestamp: str
    environment: str
    database: str | None = None


def _report(status: str, database: str | None = None) -> HealthResponse:
    return HealthResponse(
        status=status,
        service=settings.app_name,
        version=settings.app_version,
        timestamp=datetime.utcnow().isoformat(),
        environment=settings.app_env,
        database=database,
    )


async def _probe_database(db: AsyncSession) -> str:
    try:
        await asyncio.wait_for(
            db.execute(text("SELECT 1")), timeout=settings.database_timeout_seconds
        )
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
        logger.warning("health_database_unreachable", error=str(exc))
        return "unhealthy"
    return "healthy"


@router.get("/health", response_model=HealthResponse, summary="Liveness probe")
async def health_check() -> HealthResponse:
    """Process is up. Touches no dependencies."""
    return _report("healthy")


@router.get(
    "/health/detailed",
    response_model=HealthResponse,
    summary="Readiness probe",
)
async def detailed_health_check(
    db: AsyncSession = Depends(get_async_session),
) -> HealthResponse:
    """Checks the database. Reports ``degraded`` instead of failing the request."""
    database = await _probe_database(db)
    return _report("healthy" if database == "healthy" else "degraded", database)
