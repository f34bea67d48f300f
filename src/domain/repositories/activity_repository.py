"""Activity event repository protocol."""

from datetime import datetime
from typing import Protocol

from domain.entities.activity import ActivityEvent


class IActivityRepository(Protocol):
    """Repository interface for ActivityEvent records."""

    async def create(self, event: ActivityEvent) -> ActivityEvent:
        """Persist a new activity event."""
        ...

    async def list(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        resource_type: str | None = None,
        action_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ActivityEvent]:
        """List events newest first; ``start`` and ``end`` are inclusive."""
        ...

    async def count(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        resource_type: str | None = None,
        action_type: str | None = None,
    ) -> int:
        """Count events matching the same filters as ``list``."""
        ...
