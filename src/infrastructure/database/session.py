"""Async engine and session factory shared by the API and background work."""

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import Settings, settings


def build_engine(config: Settings) -> AsyncEngine:
    """Create the engine for the configured database.

    SQLite (local runs) gets the driver defaults; pool sizing only applies
    to server databases.
    """
    url = config.async_database_url
    options: dict[str, Any] = {"echo": config.debug}
    if not url.startswith("sqlite"):
        options.update(
            pool_pre_ping=True,
            pool_size=config.database_pool_size,
            max_overflow=config.database_max_overflow,
        )
    return create_async_engine(url, **options)


engine = build_engine(settings)

# Immediate notifications outlive the request that scheduled them, so every
# unit of work opens its own session from this factory.
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def dispose_engine() -> None:
    """Close pooled connections on shutdown."""
    await engine.dispose()
