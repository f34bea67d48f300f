"""SQLAlchemy Unit of Work implementation."""

from types import TracebackType
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.repositories.sqlalchemy_activity_repo import (
    SQLAlchemyActivityRepository,
)
from infrastructure.database.repositories.sqlalchemy_notification_repo import (
    SQLAlchemyNotificationSettingsRepository,
)
from infrastructure.database.repositories.sqlalchemy_profile_repo import (
    SQLAlchemyProfileRepository,
)


class SQLAlchemyUnitOfWork:
    """One session and one transaction per ``async with`` block.

    Repositories are bound on entry and share the session, so a settings
    save and its history entry commit or roll back together. Leaving the
    block without ``commit()`` discards the work.
    """

    activities: SQLAlchemyActivityRepository
    profiles: SQLAlchemyProfileRepository
    notification_settings: SQLAlchemyNotificationSettingsRepository

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self._session is not None:
            raise RuntimeError("UnitOfWork is already in use")
        session = self._session_factory()
        self._session = session
        self.activities = SQLAlchemyActivityRepository(session)
        self.profiles = SQLAlchemyProfileRepository(session)
        self.notification_settings = SQLAlchemyNotificationSettingsRepository(session)
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            if exc_type is not None or session.in_transaction():
                await session.rollback()
        finally:
            await session.close()

    async def commit(self) -> None:
        if self._session is None:
            raise RuntimeError("UnitOfWork not initialized. Use as context manager.")
        await self._session.commit()

    async def rollback(self) -> None:
        if self._session is not None:
            await self._session.rollback()
