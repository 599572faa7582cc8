"""Health check endpoints for monitoring and load balancer probes."""
import logging
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from decision_bot import __version__
from decision_bot.database import get_db_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthStatus(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"]
    version: str
    database: Literal["connected", "disconnected", "unchecked"]
    details: dict | None = None


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Basic health check; returns 200 while the process is serving."""
    return HealthStatus(status="healthy", version=__version__, database="unchecked")


@router.get("/health/ready", response_model=HealthStatus)
async def readiness_check(
    session: AsyncSession = Depends(get_db_session),
) -> HealthStatus:
    """Readiness check: the decision state lives in the database, so require it."""
    try:
        result = await session.execute(text("SELECT 1"))
        result.scalar()
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return HealthStatus(
            status="unhealthy",
            version=__version__,
            database="disconnected",
            details={"database_error": str(e)},
        )

    return HealthStatus(status="healthy", version=__version__, database="connected")


@router.get("/health/live")
async def liveness_check() -> dict:
    return {"alive": True}
