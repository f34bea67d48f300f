"""Activity service layer for recording and querying activity events."""

from collections.abc import Callable
from datetime import datetime

import structlog

from domain.entities.activity import ActivityEvent, UserRole
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.notification_dispatcher import NotificationDispatcher

logger = structlog.get_logger()


class ActivityService:
    """Service layer for activity recording and retrieval."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher

    async def log(self, uow: IUnitOfWork, event: ActivityEvent) -> ActivityEvent:
        """Record an event within an existing UoW transaction.

        Fills in ``actor_role`` and ``actor_username`` from the actor's
        profile when the caller did not supply them; an unknown actor is
        treated as a plain user.

        Args:
            uow: The active Unit of Work (caller manages commit).
            event: The event to persist.

        Returns:
            The stored event.
        """
        if event.actor_role is None or not event.actor_username:
            profile = await uow.profiles.get(event.actor_id)
            if event.actor_role is None:
                event.actor_role = profile.role if profile else UserRole.USER.value
            if not event.actor_username:
                event.actor_username = profile.display_name if profile else "Unknown User"

        return await uow.activities.create(event)

    async def record_and_notify(self, event: ActivityEvent) -> ActivityEvent:
        """Persist ``event`` and hand it to the immediate dispatcher.

        Dispatch runs in the background after the commit, so a failing
        notification never fails the operation that produced the event.
        """
        async with self._uow_factory() as uow:
            stored = await self.log(uow, event)
            await uow.commit()

        logger.info(
            "activity_recorded",
            event_id=str(stored.id),
            action_type=stored.action_type,
            resource_type=stored.resource_type,
        )

        if self._dispatcher is not None:
            self._dispatcher.schedule(stored)

        return stored

    async def list_activity(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        resource_type: str | None = None,
        action_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ActivityEvent], int]:
        """Get the admin activity feed, newest first, with the total count."""
        async with self._uow_factory() as uow:
            events = await uow.activities.list(
                start=start,
                end=end,
                resource_type=resource_type,
                action_type=action_type,
                limit=limit,
                offset=offset,
            )
            total = await uow.activities.count(
                start=start,
                end=end,
                resource_type=resource_type,
                action_type=action_type,
            )
            return events, total
