"""Dependency injection factories for API v1."""

from datetime import timedelta
from functools import lru_cache
from typing import Callable

from core.config import settings
from domain.services.activity_service import ActivityService
from domain.services.digest_scheduler import DigestScheduler
from domain.services.history_recorder import HistoryRecorder
from domain.services.mail_sender import IMailSender
from domain.services.notification_dispatcher import NotificationDispatcher
from domain.services.notification_settings_service import NotificationSettingsService
from domain.services.notification_templates import NotificationTemplates
from infrastructure.database.session import async_session_factory
from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork
from infrastructure.mail import build_mail_sender


def get_uow_factory() -> Callable[[], SQLAlchemyUnitOfWork]:
    """Factory for creating Unit of Work instances."""

    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(async_session_factory)

    return factory


@lru_cache
def get_mail_sender() -> IMailSender:
    """Get the configured mail sender."""
    return build_mail_sender(settings)


@lru_cache
def get_notification_templates() -> NotificationTemplates:
    """Get notification template renderer."""
    return NotificationTemplates(frontend_url=settings.frontend_url)


@lru_cache
def get_history_recorder() -> HistoryRecorder:
    """Get History recorder instance."""
    return HistoryRecorder(
        get_uow_factory(),
        retention_days=settings.notification_history_retention_days,
        max_entries=settings.notification_history_max_entries,
    )


@lru_cache
def get_notification_dispatcher() -> NotificationDispatcher:
    """Get immediate Notification dispatcher instance."""
    return NotificationDispatcher(
        get_uow_factory(),
        mail_sender=get_mail_sender(),
        templates=get_notification_templates(),
        history_recorder=get_history_recorder(),
    )


@lru_cache
def get_digest_scheduler() -> DigestScheduler:
    """Get Digest scheduler instance."""
    return DigestScheduler(
        get_uow_factory(),
        mail_sender=get_mail_sender(),
        templates=get_notification_templates(),
        history_recorder=get_history_recorder(),
        event_cap=settings.notification_digest_event_cap,
        max_window=timedelta(days=settings.notification_digest_max_window_days),
        lease_duration=timedelta(seconds=settings.notification_digest_lease_seconds),
    )


@lru_cache
def get_activity_service() -> ActivityService:
    """Get Activity service instance."""
    return ActivityService(get_uow_factory(), dispatcher=get_notification_dispatcher())


@lru_cache
def get_notification_settings_service() -> NotificationSettingsService:
    """Get Notification settings service instance."""
    return NotificationSettingsService(get_uow_factory())
