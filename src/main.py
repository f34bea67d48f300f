"""Main FastAPI application entry point."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.exception_handlers import setup_exception_handlers
from api.middleware.logging import RequestLoggingMiddleware
from api.middleware.request_id import RequestIDMiddleware
from api.middleware.security import SecurityHeadersMiddleware
from api.routes.health import router as health_router
from api.v1 import router as v1_router
from api.v1.dependencies import get_history_recorder, get_notification_dispatcher
from core.config import settings
from core.logging import setup_logging
from core.rate_limit import limiter, rate_limit_exceeded_handler
from infrastructure.database.session import dispose_engine

logger = structlog.get_logger()

# Initialize structured logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup/shutdown tasks."""

    async def history_prune_loop() -> None:
        """Periodically apply the notification history retention policy.

        Recording already prunes after each dispatch; this catches
        deployments where nothing has been sent for a long time.
        """
        while True:
            await asyncio.sleep(settings.notification_history_prune_interval_seconds)
            try:
                pruned = await get_history_recorder().prune()
                if pruned > 0:
                    logger.info("notification_history_pruned", deleted_count=pruned)
            except Exception:
                logger.exception("notification_history_prune_failed")

    logger.info(
        "application_started",
        environment=settings.app_env,
        mail_backend=settings.mail_backend,
    )
    prune_task = asyncio.create_task(history_prune_loop())
    yield
    prune_task.cancel()
    # Let in-flight immediate notifications finish before the loop closes
    await get_notification_dispatcher().drain()
    await dispose_engine()
    logger.info("application_stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        title=settings.app_name,
        description=(
            "## Media Library Activity Notifications\n\n"
            "Records activity in the media library admin and alerts administrators "
            "by email, per configurable rule, immediately or as periodic digests.\n\n"
            "### Features\n"
            "- **Activity feed**: Every upload, edit, delete and login in one place\n"
            "- **Rules**: Filter by action, resource type, role or user\n"
            "- **Digests**: Hourly, daily or weekly summaries triggered by your scheduler\n"
            "- **Throttling**: Per-recipient hourly caps\n\n"
            "### Authentication\n"
            "All endpoints (except `/health`) require a valid JWT token "
            "in the Authorization header:\n"
            "```\nAuthorization: Bearer <your_token>\n```\n"
            "Settings, history and digest endpoints require the `admin` or "
            "`superAdmin` role.\n\n"
            "### Rate Limits\n"
            "- GET endpoints: 30 requests/minute\n"
            "- PUT/DELETE and digest runs: 10 requests/minute\n"
            "- Activity recording: 60 requests/minute"
        ),
        version=settings.app_version,
        debug=settings.debug,
        contact={
            "name": "Media Library Support",
        },
        license_info={
            "name": "MIT",
        },
        openapi_tags=[
            {
                "name": "health",
                "description": "Health check endpoints",
            },
            {
                "name": "activity",
                "description": "Activity recording and the admin activity feed",
            },
            {
                "name": "notification-settings",
                "description": "Notification settings, rules, recipients and history",
            },
            {
                "name": "notification-digests",
                "description": "Digest runs for an external scheduler",
            },
        ],
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Security & tracking middleware (LIFO order - last added = outermost)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    app.add_middleware(RequestIDMiddleware)

    # GZip compression for responses > 1KB
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Setup exception handlers
    setup_exception_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(v1_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
    )
