"""SQLAlchemy implementation of the notification settings repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from core.exceptions import SettingsConflictError
from domain.entities.notification import (
    NotificationHistoryEntry,
    NotificationRule,
    NotificationSettings,
    ThrottlePolicy,
)
from infrastructure.database.models import (
    SETTINGS_KEY,
    DigestLeaseModel,
    NotificationHistoryModel,
    NotificationRuleModel,
    NotificationSettingsModel,
)


def _ids_to_json(ids: list[UUID]) -> list[str]:
    return [str(i) for i in ids]


def _ids_from_json(values: list[str] | None) -> list[UUID]:
    return [UUID(v) for v in values or []]


class SQLAlchemyNotificationSettingsRepository:
    """SQLAlchemy implementation of INotificationSettingsRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- Aggregate ---

    async def _load(self) -> NotificationSettingsModel | None:
        stmt = (
            select(NotificationSettingsModel)
            .where(NotificationSettingsModel.key == SETTINGS_KEY)
            .options(
                selectinload(NotificationSettingsModel.rules),
                selectinload(NotificationSettingsModel.history),
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self) -> NotificationSettings | None:
        """Load the settings with their rules and history."""
        model = await self._load()
        return self._to_entity(model) if model else None

    async def create(self, settings: NotificationSettings) -> NotificationSettings:
        """Persist freshly created settings."""
        model = NotificationSettingsModel(
            id=settings.id,
            key=SETTINGS_KEY,
            created_at=settings.created_at,
        )
        self._apply(model, settings)
        self._session.add(model)
        await self._session.flush()
        settings.version = model.version
        return settings

    async def save(self, settings: NotificationSettings) -> NotificationSettings:
        """Write scalar fields and rules back, bumping ``version``."""
        model = await self._load()
        if model is None or model.version != settings.version:
            raise SettingsConflictError(settings.version)

        self._apply(model, settings)
        # Always touch the row so a rules-only change still bumps the version
        model.updated_at = datetime.utcnow()
        try:
            await self._session.flush()
        except StaleDataError as e:
            raise SettingsConflictError(settings.version) from e

        settings.version = model.version
        settings.updated_at = model.updated_at
        return settings

    def _apply(self, model: NotificationSettingsModel, settings: NotificationSettings) -> None:
        model.enabled = settings.enabled
        model.recipients = _ids_to_json(settings.recipients)
        model.frequency = settings.frequency
        model.scheduled_time = settings.scheduled_time
        model.throttling_enabled = settings.throttling.enabled
        model.max_emails_per_hour = settings.throttling.max_emails_per_hour
        model.last_sent_at = settings.last_sent_at

        existing = {rule.id: rule for rule in model.rules}
        rules: list[NotificationRuleModel] = []
        for position, rule in enumerate(settings.rules):
            rule_model = existing.get(rule.id) or NotificationRuleModel(id=rule.id)
            rule_model.position = position
            rule_model.name = rule.name
            rule_model.enabled = rule.enabled
            rule_model.action_types = list(rule.action_types)
            rule_model.resource_types = list(rule.resource_types)
            rule_model.trigger_roles = list(rule.trigger_roles)
            rule_model.trigger_user_ids = _ids_to_json(rule.trigger_user_ids)
            rule_model.priority = rule.priority
            rule_model.include_details = rule.include_details
            rule_model.subject_template = rule.subject_template
            rules.append(rule_model)
        model.rules = rules

    # --- History ---

    async def add_history_entry(
        self, settings_id: UUID, entry: NotificationHistoryEntry
    ) -> NotificationHistoryEntry:
        """Append one history entry."""
        model = NotificationHistoryModel(
            id=entry.id,
            settings_id=settings_id,
            kind=entry.kind,
            sent_at=entry.sent_at,
            recipient_count=entry.recipient_count,
            activity_count=entry.activity_count,
            recipient_ids=_ids_to_json(entry.recipient_ids),
            skipped_recipient_ids=_ids_to_json(entry.skipped_recipient_ids),
        )
        self._session.add(model)
        await self._session.flush()
        return self._history_to_entity(model)

    async def get_history(
        self, settings_id: UUID, limit: int = 50
    ) -> list[NotificationHistoryEntry]:
        """Get the newest history entries first."""
        stmt = (
            select(NotificationHistoryModel)
            .where(NotificationHistoryModel.settings_id == settings_id)
            .order_by(NotificationHistoryModel.sent_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._history_to_entity(m) for m in result.scalars()]

    async def prune_history(
        self, settings_id: UUID, older_than: datetime, keep_latest: int
    ) -> int:
        """Delete entries past retention and beyond the newest ``keep_latest``."""
        expired = await self._session.execute(
            delete(NotificationHistoryModel)
            .where(
                NotificationHistoryModel.settings_id == settings_id,
                NotificationHistoryModel.sent_at < older_than,
            )
            .execution_options(synchronize_session=False)
        )
        removed = expired.rowcount or 0

        overflow_ids = (
            select(NotificationHistoryModel.id)
            .where(NotificationHistoryModel.settings_id == settings_id)
            .order_by(NotificationHistoryModel.sent_at.desc())
            .offset(keep_latest)
        )
        overflow = list((await self._session.execute(overflow_ids)).scalars())
        if overflow:
            result = await self._session.execute(
                delete(NotificationHistoryModel)
                .where(NotificationHistoryModel.id.in_(overflow))
                .execution_options(synchronize_session=False)
            )
            removed += result.rowcount or 0

        return removed

    # --- Digest leases ---

    async def try_acquire_lease(
        self, name: str, holder: str, now: datetime, expires_at: datetime
    ) -> bool:
        """Take the named lease if it is free or expired."""
        result = await self._session.execute(
            update(DigestLeaseModel)
            .where(
                DigestLeaseModel.name == name,
                DigestLeaseModel.expires_at <= now,
            )
            .values(holder=holder, acquired_at=now, expires_at=expires_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return True

        if await self._session.get(DigestLeaseModel, name) is not None:
            return False

        self._session.add(
            DigestLeaseModel(name=name, holder=holder, acquired_at=now, expires_at=expires_at)
        )
        try:
            await self._session.flush()
        except IntegrityError:
            # Another process inserted the lease first
            await self._session.rollback()
            return False
        return True

    async def release_lease(self, name: str, holder: str) -> None:
        """Release the named lease if ``holder`` still owns it."""
        await self._session.execute(
            delete(DigestLeaseModel)
            .where(DigestLeaseModel.name == name, DigestLeaseModel.holder == holder)
            .execution_options(synchronize_session=False)
        )

    # --- Mapping ---

    def _to_entity(self, model: NotificationSettingsModel) -> NotificationSettings:
        """Convert ORM model to domain entity."""
        return NotificationSettings(
            id=model.id,
            enabled=model.enabled,
            recipients=_ids_from_json(model.recipients),
            frequency=model.frequency,
            scheduled_time=model.scheduled_time,
            rules=[self._rule_to_entity(r) for r in model.rules],
            throttling=ThrottlePolicy(
                enabled=model.throttling_enabled,
                max_emails_per_hour=model.max_emails_per_hour,
            ),
            last_sent_at=model.last_sent_at,
            history=[self._history_to_entity(h) for h in model.history],
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _rule_to_entity(self, model: NotificationRuleModel) -> NotificationRule:
        return NotificationRule(
            id=model.id,
            name=model.name,
            enabled=model.enabled,
            action_types=list(model.action_types),
            resource_types=list(model.resource_types),
            trigger_roles=list(model.trigger_roles),
            trigger_user_ids=_ids_from_json(model.trigger_user_ids),
            priority=model.priority,
            include_details=model.include_details,
            subject_template=model.subject_template,
        )

    def _history_to_entity(self, model: NotificationHistoryModel) -> NotificationHistoryEntry:
        return NotificationHistoryEntry(
            id=model.id,
            kind=model.kind,
            sent_at=model.sent_at,
            recipient_count=model.recipient_count,
            activity_count=model.activity_count,
            recipient_ids=_ids_from_json(model.recipient_ids),
            skipped_recipient_ids=_ids_from_json(model.skipped_recipient_ids),
        )
