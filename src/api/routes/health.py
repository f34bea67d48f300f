"""Health check endpoints."""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text

from api.v1.dependencies import get_notification_dispatcher
from core.config import settings
from domain.services.notification_dispatcher import NotificationDispatcher
from infrastructure.database.session import async_session_factory

logger = structlog.get_logger()

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health plus the state of the notification pipeline."""

    database: str
    mail_backend: str
    pending_notifications: int


def _base_fields() -> dict[str, str]:
    return {
        "version": settings.app_version,
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.app_env,
    }


@router.get("/health", response_model=HealthResponse, summary="Basic health check")
async def health_check() -> HealthResponse:
    """Liveness check. Does not touch the database or the mail backend."""
    return HealthResponse(status="healthy", **_base_fields())


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    summary="Detailed health check",
)
async def detailed_health_check(
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> DetailedHealthResponse:
    """
    Readiness check.

    Checks database connectivity and reports the configured mail backend
    and how many immediate notifications are still in flight. A database
    failure reports ``degraded`` rather than an error status.
    """
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as e:
        logger.warning("health_database_check_failed", error_type=type(e).__name__)
        db_status = f"unhealthy: {type(e).__name__}"

    return DetailedHealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        database=db_status,
        mail_backend=settings.mail_backend,
        pending_notifications=dispatcher.pending,
        **_base_fields(),
    )
