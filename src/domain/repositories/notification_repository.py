"""Notification settings repository protocol."""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from domain.entities.notification import NotificationHistoryEntry, NotificationSettings


class INotificationSettingsRepository(Protocol):
    """Repository interface for the global NotificationSettings aggregate."""

    # --- Aggregate ---

    async def get(self) -> NotificationSettings | None:
        """Load the settings with their rules and history, if they exist."""
        ...

    async def create(self, settings: NotificationSettings) -> NotificationSettings:
        """Persist freshly created settings."""
        ...

    async def save(self, settings: NotificationSettings) -> NotificationSettings:
        """Write scalar fields and rules back.

        Raises:
            SettingsConflictError: ``settings.version`` is not the stored version.
        """
        ...

    # --- History ---

    async def add_history_entry(
        self, settings_id: UUID, entry: NotificationHistoryEntry
    ) -> NotificationHistoryEntry:
        """Append one history entry."""
        ...

    async def get_history(
        self, settings_id: UUID, limit: int = 50
    ) -> list[NotificationHistoryEntry]:
        """Get the newest history entries first."""
        ...

    async def prune_history(
        self, settings_id: UUID, older_than: datetime, keep_latest: int
    ) -> int:
        """Delete entries older than ``older_than`` or beyond the newest ``keep_latest``."""
        ...

    # --- Digest leases ---

    async def try_acquire_lease(
        self, name: str, holder: str, now: datetime, expires_at: datetime
    ) -> bool:
        """Take the named lease if it is free or expired."""
        ...

    async def release_lease(self, name: str, holder: str) -> None:
        """Release the named lease if ``holder`` still owns it."""
        ...
