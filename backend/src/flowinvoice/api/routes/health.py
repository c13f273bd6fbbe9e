"""
Health check endpoint.

Provides system health status for monitoring and load balancers.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from flowinvoice import __version__
from flowinvoice.api.dependencies import get_db_session
from flowinvoice.api.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> HealthResponse:
    """
    Check system health.

    Returns status of core components for monitoring dashboards
    and load balancer health checks.
    """
    database = "connected"
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database = "unavailable"

    return HealthResponse(
        status="healthy" if database == "connected" else "degraded",
        version=__version__,
        database=database,
    )
