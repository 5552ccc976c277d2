"""
Health check endpoints.

Liveness and readiness probes. Readiness requires the database; the event
channel is reported but does not gate readiness, since broadcasts are
fire-and-forget.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardarena.db.database import get_session
from cardarena.services.broadcaster import Broadcaster, get_broadcaster

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str | None = None
    broadcaster: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness probe. Does not check dependencies."""
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
    broadcaster: Annotated[Broadcaster, Depends(get_broadcaster)],
) -> HealthResponse:
    """
    Readiness probe.

    Returns 503 if the database is unavailable.
    """
    try:
        broadcaster_ok = await broadcaster.ping()
    except Exception as e:
        logger.warning("Broadcaster ping failed: %s", e)
        broadcaster_ok = False
    channel = "connected" if broadcaster_ok else "degraded"

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Database readiness check failed: %s", e)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not ready", database="disconnected", broadcaster=channel)
    return HealthResponse(status="ready", database="connected", broadcaster=channel)
