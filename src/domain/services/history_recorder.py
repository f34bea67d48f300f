"""Audit history and last-sent bookkeeping for notification dispatches."""

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from uuid import UUID

import structlog

from core.exceptions import SettingsConflictError
from domain.entities.notification import HistoryKind, NotificationHistoryEntry
from domain.repositories.unit_of_work import IUnitOfWork

logger = structlog.get_logger()

MAX_RECORD_ATTEMPTS = 3


class HistoryRecorder:
    """Appends history entries and advances ``last_sent_at``.

    Each call runs in its own Unit of Work. A concurrent admin edit of the
    settings makes the save stale; the recorder then reloads and tries again
    so audit entries survive.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        retention_days: int = 90,
        max_entries: int = 500,
    ) -> None:
        self._uow_factory = uow_factory
        self._retention = timedelta(days=retention_days)
        self._max_entries = max_entries

    async def record(
        self,
        recipient_ids: Sequence[UUID],
        activity_count: int,
        sent_at: datetime,
        kind: HistoryKind = HistoryKind.IMMEDIATE,
        skipped_recipient_ids: Sequence[UUID] = (),
    ) -> NotificationHistoryEntry | None:
        """Append one entry and set ``last_sent_at = sent_at``.

        Returns None when there are no settings to record against.
        """
        for attempt in range(1, MAX_RECORD_ATTEMPTS + 1):
            try:
                return await self._record_once(
                    recipient_ids, activity_count, sent_at, kind, skipped_recipient_ids
                )
            except SettingsConflictError:
                logger.warning(
                    "notification_history_conflict",
                    attempt=attempt,
                    kind=kind.value,
                )
                if attempt == MAX_RECORD_ATTEMPTS:
                    raise
        return None

    async def _record_once(
        self,
        recipient_ids: Sequence[UUID],
        activity_count: int,
        sent_at: datetime,
        kind: HistoryKind,
        skipped_recipient_ids: Sequence[UUID],
    ) -> NotificationHistoryEntry | None:
        async with self._uow_factory() as uow:
            settings = await uow.notification_settings.get()
            if settings is None:
                return None

            entry = NotificationHistoryEntry(
                sent_at=sent_at,
                recipient_count=len(set(recipient_ids)),
                activity_count=activity_count,
                kind=kind.value,
                recipient_ids=list(recipient_ids),
                skipped_recipient_ids=list(skipped_recipient_ids),
            )

            settings.last_sent_at = sent_at
            await uow.notification_settings.save(settings)
            created = await uow.notification_settings.add_history_entry(settings.id, entry)
            pruned = await uow.notification_settings.prune_history(
                settings.id,
                older_than=sent_at - self._retention,
                keep_latest=self._max_entries,
            )
            await uow.commit()

        logger.info(
            "notification_history_recorded",
            kind=kind.value,
            recipient_count=entry.recipient_count,
            activity_count=activity_count,
            skipped_count=len(entry.skipped_recipient_ids),
            pruned=pruned,
        )
        return created

    async def prune(self, now: datetime | None = None) -> int:
        """Apply the retention policy without recording anything."""
        now = now or datetime.utcnow()
        async with self._uow_factory() as uow:
            settings = await uow.notification_settings.get()
            if settings is None:
                return 0
            count = await uow.notification_settings.prune_history(
                settings.id,
                older_than=now - self._retention,
                keep_latest=self._max_entries,
            )
            await uow.commit()
            return count
