"""Periodic digest delivery (hourly / daily / weekly).

The scheduler never triggers itself; an external cron-like job calls
``run_batch`` for its frequency. Each run covers the window since the last
send, so consecutive runs pick up exactly the events in between as long as
``last_sent_at`` only moves once a run has finished.
"""

import socket
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID, uuid4

import structlog

from core.exceptions import InvalidDigestFrequencyError, MailDeliveryError
from domain.entities.activity import ActivityEvent
from domain.entities.notification import (
    DIGEST_FREQUENCIES,
    DigestRunResult,
    Frequency,
    HistoryKind,
    MailMessage,
    NotificationSettings,
)
from domain.entities.profile import Profile
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services import throttle
from domain.services.history_recorder import HistoryRecorder
from domain.services.mail_sender import IMailSender
from domain.services.notification_templates import NotificationTemplates
from domain.services.recipients import resolve_recipients
from domain.services.rule_evaluator import group_by_rule

logger = structlog.get_logger()

DEFAULT_WINDOWS = {
    Frequency.HOURLY.value: timedelta(hours=1),
    Frequency.DAILY.value: timedelta(hours=24),
    Frequency.WEEKLY.value: timedelta(days=7),
}


def compute_window(
    frequency: str,
    last_sent_at: datetime | None,
    now: datetime,
    max_window: timedelta | None = None,
) -> tuple[datetime, datetime]:
    """Return the inclusive ``(start, end)`` window for a run at ``now``.

    Starts at ``last_sent_at`` when there is one, otherwise one period
    back. ``max_window`` bounds how far back a long-quiet window reaches.
    """
    end = now
    start = last_sent_at if last_sent_at is not None else end - DEFAULT_WINDOWS[frequency]
    if max_window is not None and end - start > max_window:
        start = end - max_window
    return start, end


class DigestScheduler:
    """Aggregates activity per rule and mails one digest per rule group."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        mail_sender: IMailSender,
        templates: NotificationTemplates,
        history_recorder: HistoryRecorder,
        event_cap: int = 1000,
        max_window: timedelta = timedelta(days=30),
        lease_duration: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._mail_sender = mail_sender
        self._templates = templates
        self._history = history_recorder
        self._event_cap = event_cap
        self._max_window = max_window
        self._lease_duration = lease_duration
        self._clock = clock
        self._holder = f"{socket.gethostname()}:{uuid4().hex[:8]}"

    async def run_batch(self, frequency: str) -> DigestRunResult:
        """Run one digest for ``frequency`` if the settings ask for it."""
        if frequency not in DIGEST_FREQUENCIES:
            raise InvalidDigestFrequencyError(frequency)

        lease = f"digest:{frequency}"
        now = self._clock()
        async with self._uow_factory() as uow:
            acquired = await uow.notification_settings.try_acquire_lease(
                lease, self._holder, now=now, expires_at=now + self._lease_duration
            )
            await uow.commit()

        if not acquired:
            logger.warning("digest_run_already_in_progress", frequency=frequency)
            return DigestRunResult(frequency=frequency, skipped_reason="locked")

        try:
            return await self._run(frequency)
        finally:
            async with self._uow_factory() as uow:
                await uow.notification_settings.release_lease(lease, self._holder)
                await uow.commit()

    async def _run(self, frequency: str) -> DigestRunResult:
        result = DigestRunResult(frequency=frequency)

        async with self._uow_factory() as uow:
            settings = await uow.notification_settings.get()
            if settings is None or not settings.enabled or settings.frequency != frequency:
                result.skipped_reason = "not_configured"
                return result

            start, end = compute_window(
                frequency, settings.last_sent_at, self._clock(), self._max_window
            )
            result.window_start, result.window_end = start, end

            events = await uow.activities.list(start=start, end=end, limit=self._event_cap)
            if len(events) >= self._event_cap:
                total = await uow.activities.count(start=start, end=end)
                if total > self._event_cap:
                    logger.warning(
                        "digest_event_cap_reached",
                        frequency=frequency,
                        total=total,
                        dropped=total - self._event_cap,
                    )

            if not events:
                result.skipped_reason = "no_activity"
                logger.info("digest_window_empty", frequency=frequency, start=str(start))
                return result

            recipients = await resolve_recipients(uow, settings.recipients)

        if not recipients:
            result.skipped_reason = "no_recipients"
            logger.info("digest_no_recipients", frequency=frequency)
            return result

        attempted = await self._send_groups(events, settings, recipients, frequency, end, result)

        await self._history.record(
            recipient_ids=attempted,
            activity_count=result.activity_count,
            sent_at=end,
            kind=HistoryKind.DIGEST,
            skipped_recipient_ids=result.throttled_recipient_ids,
        )

        logger.info(
            "digest_run_completed",
            frequency=frequency,
            window_start=start.isoformat(),
            window_end=end.isoformat(),
            events=len(events),
            matched=result.activity_count,
            groups=result.group_count,
            sent=result.messages_sent,
            failed=result.messages_failed,
            throttled=len(result.throttled_recipient_ids),
        )
        return result

    async def _send_groups(
        self,
        events: list[ActivityEvent],
        settings: NotificationSettings,
        recipients: list[Profile],
        frequency: str,
        now: datetime,
        result: DigestRunResult,
    ) -> list[UUID]:
        groups = group_by_rule(events, settings)
        rules = {rule.id: rule for rule in settings.rules}

        matched: set[UUID] = set()
        pending: dict[UUID, int] = {}
        attempted: list[UUID] = []

        for rule_id, group in groups.items():
            if not group:
                continue
            rule = rules[rule_id]
            result.group_count += 1
            matched.update(e.id for e in group)
            rendered = self._templates.digest_message(group, rule, frequency)

            for recipient in recipients:
                if not throttle.allow(
                    recipient.id, settings, now, pending=pending.get(recipient.id, 0)
                ):
                    logger.info(
                        "digest_throttled",
                        recipient_id=str(recipient.id),
                        rule_id=str(rule_id),
                    )
                    if recipient.id not in result.throttled_recipient_ids:
                        result.throttled_recipient_ids.append(recipient.id)
                    continue

                pending[recipient.id] = pending.get(recipient.id, 0) + 1
                attempted.append(recipient.id)
                message = MailMessage(
                    to=recipient.email,
                    subject=rendered.subject,
                    text_body=rendered.text_body,
                    html_body=rendered.html_body,
                )
                try:
                    await self._mail_sender.send(message)
                except MailDeliveryError as e:
                    logger.warning(
                        "digest_delivery_failed",
                        recipient_id=str(recipient.id),
                        rule_id=str(rule_id),
                        error=e.message,
                    )
                    result.messages_failed += 1
                    continue
                except Exception:
                    logger.exception(
                        "digest_delivery_error",
                        recipient_id=str(recipient.id),
                        rule_id=str(rule_id),
                    )
                    result.messages_failed += 1
                    continue
                result.messages_sent += 1

        result.activity_count = len(matched)
        return attempted
