"""Unit of Work protocol."""

from types import TracebackType
from typing import Optional, Protocol

from domain.repositories.activity_repository import IActivityRepository
from domain.repositories.notification_repository import INotificationSettingsRepository
from domain.repositories.profile_repository import IProfileRepository


class IUnitOfWork(Protocol):
    """Transaction boundary spanning the activity log, profiles and settings.

    Work is only persisted by ``commit()``; leaving the context without it
    rolls back.
    """

    activities: IActivityRepository
    profiles: IProfileRepository
    notification_settings: INotificationSettingsRepository

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def __aenter__(self) -> "IUnitOfWork": ...

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None: ...
