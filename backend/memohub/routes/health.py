"""
MemoHub Backend — Health Check Route
=====================================

Status levels:
    healthy    database reachable, Gemini reachable (or not configured)
    degraded   database reachable, Gemini unreachable or circuit open
    unhealthy  database unreachable
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from memohub import __version__
from memohub.config import settings
from memohub.database import engine
from memohub.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Reports database connectivity, Gemini availability and uptime.",
)
async def health_check() -> HealthResponse:
    db_status = "connected"
    gemini_status = "available"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Gemini API ──────────────────────────────────────────────────
    if not settings.ai_enabled:
        gemini_status = "not_configured"
    else:
        try:
            from memohub.services.gemini_service import gemini_service

            if gemini_service.circuit_state == "open":
                gemini_status = "circuit_open"
            elif not await gemini_service.health_check():
                gemini_status = "unavailable"
        except Exception as e:
            gemini_status = "unavailable"
            logger.warning("Health check: Gemini unreachable: %s", str(e))
        if gemini_status != "available" and overall == "healthy":
            overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        gemini=gemini_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
