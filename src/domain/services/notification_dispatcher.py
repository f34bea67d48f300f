"""Immediate notification delivery for single activity events."""

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime
from uuid import UUID

import structlog

from core.exceptions import MailDeliveryError
from domain.entities.activity import ActionType, ActivityEvent, ResourceType
from domain.entities.notification import (
    DispatchResult,
    Frequency,
    HistoryKind,
    MailMessage,
    NotificationRule,
    NotificationSettings,
    build_test_rule,
)
from domain.entities.profile import Profile
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services import throttle
from domain.services.history_recorder import HistoryRecorder
from domain.services.mail_sender import IMailSender
from domain.services.notification_templates import NotificationTemplates
from domain.services.recipients import resolve_recipients
from domain.services.rule_evaluator import evaluate

logger = structlog.get_logger()


class NotificationDispatcher:
    """Evaluates one event and mails every eligible recipient right away."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        mail_sender: IMailSender,
        templates: NotificationTemplates,
        history_recorder: HistoryRecorder,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._mail_sender = mail_sender
        self._templates = templates
        self._history = history_recorder
        self._clock = clock
        self._tasks: set[asyncio.Task[DispatchResult | None]] = set()

    # --- Fire-and-forget entry point ---

    def schedule(self, event: ActivityEvent) -> asyncio.Task[DispatchResult | None]:
        """Run ``on_activity`` in the background and return the task.

        The caller does not await delivery; errors end up in the log.
        """
        task = asyncio.create_task(self._run_safely(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        """Scheduled dispatches that have not finished yet."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled dispatch (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _run_safely(self, event: ActivityEvent) -> DispatchResult | None:
        try:
            return await self.on_activity(event)
        except Exception:
            logger.exception(
                "notification_dispatch_failed",
                event_id=str(event.id),
                action_type=event.action_type,
            )
            return None

    # --- Immediate path ---

    async def on_activity(self, event: ActivityEvent) -> DispatchResult | None:
        """Notify recipients about ``event`` when an immediate rule matches.

        Returns None when nothing was attempted because settings are
        missing, disabled, not immediate, or no rule matched.
        """
        async with self._uow_factory() as uow:
            settings = await uow.notification_settings.get()
            if settings is None or settings.frequency != Frequency.IMMEDIATE.value:
                return None

            rule = evaluate(event, settings)
            if rule is None:
                return None

            recipients = await resolve_recipients(uow, settings.recipients)

        if not recipients:
            logger.info(
                "notification_no_recipients",
                event_id=str(event.id),
                rule_id=str(rule.id),
            )
            return DispatchResult(matched_rule_id=rule.id)

        now = self._clock()
        result = await self._deliver(event, rule, recipients, settings, now)

        await self._history.record(
            recipient_ids=result.attempted,
            activity_count=1,
            sent_at=now,
            kind=HistoryKind.IMMEDIATE,
            skipped_recipient_ids=result.throttled,
        )
        result.recorded = True
        return result

    async def send_test(
        self, actor: Profile, recipient_ids: Sequence[UUID] | None = None
    ) -> DispatchResult:
        """Send a synthetic TEST event through the immediate delivery path.

        Ignores ``enabled``, ``frequency`` and throttling and writes no
        history. Defaults to mailing the actor.
        """
        event = ActivityEvent(
            action_type=ActionType.TEST.value,
            resource_type=ResourceType.SYSTEM.value,
            resource_id="test",
            actor_id=actor.id,
            actor_username=actor.display_name,
            actor_role=actor.role,
            details="This is a test notification",
            timestamp=self._clock(),
        )
        rule = build_test_rule()

        if recipient_ids:
            async with self._uow_factory() as uow:
                recipients = await resolve_recipients(uow, list(recipient_ids))
        else:
            recipients = [actor] if actor.email else []

        if not recipients:
            logger.info("test_notification_no_recipients", actor_id=str(actor.id))
            return DispatchResult(matched_rule_id=rule.id)

        return await self._deliver(event, rule, recipients, None, event.timestamp)

    async def _deliver(
        self,
        event: ActivityEvent,
        rule: NotificationRule,
        recipients: Sequence[Profile],
        settings: NotificationSettings | None,
        now: datetime,
    ) -> DispatchResult:
        result = DispatchResult(matched_rule_id=rule.id)
        rendered = self._templates.activity_message(event, rule)

        for recipient in recipients:
            if settings is not None and not throttle.allow(recipient.id, settings, now):
                logger.info(
                    "notification_throttled",
                    recipient_id=str(recipient.id),
                    max_per_hour=settings.throttling.max_emails_per_hour,
                )
                result.throttled.append(recipient.id)
                continue

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
                    "notification_delivery_failed",
                    recipient_id=str(recipient.id),
                    error=e.message,
                )
                result.failed.append(recipient.id)
                continue
            except Exception:
                logger.exception(
                    "notification_delivery_error",
                    recipient_id=str(recipient.id),
                )
                result.failed.append(recipient.id)
                continue

            result.sent.append(recipient.id)

        logger.info(
            "notification_dispatched",
            event_id=str(event.id),
            rule_id=str(rule.id),
            rule_priority=rule.priority,
            sent=len(result.sent),
            failed=len(result.failed),
            throttled=len(result.throttled),
        )
        return result
