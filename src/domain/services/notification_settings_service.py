"""Configuration surface for the global notification settings."""

import re
from collections.abc import Callable, Sequence
from uuid import UUID

import structlog

from core.exceptions import (
    InvalidNotificationRuleError,
    InvalidNotificationSettingsError,
    NotificationRuleNotFoundError,
    SettingsConflictError,
)
from domain.entities.activity import (
    ACTION_TYPE_VALUES,
    ADMIN_ROLES,
    RESOURCE_TYPE_VALUES,
    USER_ROLE_VALUES,
    UserRole,
)
from domain.entities.notification import (
    ALL,
    DEFAULT_SUBJECT_TEMPLATE,
    Frequency,
    NotificationHistoryEntry,
    NotificationRule,
    NotificationSettings,
    Priority,
    ThrottlePolicy,
    build_default_rule,
)
from domain.entities.profile import Profile
from domain.repositories.unit_of_work import IUnitOfWork

logger = structlog.get_logger()

SCHEDULED_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
FREQUENCY_VALUES = frozenset(f.value for f in Frequency)
PRIORITY_VALUES = frozenset(p.value for p in Priority)


def _validate_choices(
    values: Sequence[str], known: frozenset[str], field: str
) -> list[str]:
    if not values:
        raise InvalidNotificationRuleError(f"{field} must not be empty", field=field)
    unknown = [v for v in values if v != ALL and v not in known]
    if unknown:
        raise InvalidNotificationRuleError(
            f"Unknown {field}: {', '.join(unknown)}", field=field
        )
    return list(dict.fromkeys(values))


def validate_rule(rule: NotificationRule) -> NotificationRule:
    """Reject rules the evaluator could never match sensibly.

    Normalizes the name and drops duplicate list values in place.
    """
    rule.name = rule.name.strip()
    if not rule.name:
        raise InvalidNotificationRuleError("Rule name is required", field="name")
    rule.action_types = _validate_choices(rule.action_types, ACTION_TYPE_VALUES, "action_types")
    rule.resource_types = _validate_choices(
        rule.resource_types, RESOURCE_TYPE_VALUES, "resource_types"
    )
    rule.trigger_roles = _validate_choices(rule.trigger_roles, USER_ROLE_VALUES, "trigger_roles")
    rule.trigger_user_ids = list(dict.fromkeys(rule.trigger_user_ids))
    if rule.priority not in PRIORITY_VALUES:
        raise InvalidNotificationRuleError(f"Unknown priority: {rule.priority}", field="priority")
    if not rule.subject_template.strip():
        rule.subject_template = DEFAULT_SUBJECT_TEMPLATE
    return rule


class NotificationSettingsService:
    """Reads and edits the settings aggregate and its rules."""

    def __init__(self, uow_factory: Callable[[], IUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def _load_or_create(self, uow: IUnitOfWork) -> NotificationSettings:
        settings = await uow.notification_settings.get()
        if settings is not None:
            return settings

        super_admins = await uow.profiles.get_by_roles([UserRole.SUPER_ADMIN.value])
        settings = NotificationSettings(
            enabled=False,
            recipients=[p.id for p in super_admins],
            frequency=Frequency.DAILY.value,
            rules=[build_default_rule()],
        )
        created = await uow.notification_settings.create(settings)
        logger.info(
            "notification_settings_created",
            settings_id=str(created.id),
            recipients=len(created.recipients),
        )
        return created

    async def _validate_recipients(
        self, uow: IUnitOfWork, recipients: Sequence[UUID]
    ) -> list[UUID]:
        unique = list(dict.fromkeys(recipients))
        found = {p.id for p in await uow.profiles.get_many(unique)}
        missing = [str(r) for r in unique if r not in found]
        if missing:
            raise InvalidNotificationSettingsError(
                f"Unknown recipients: {', '.join(missing)}", field="recipients"
            )
        return unique

    # --- Global settings ---

    async def get_settings(self) -> NotificationSettings:
        """Get the settings, creating defaults on first access."""
        async with self._uow_factory() as uow:
            settings = await self._load_or_create(uow)
            await uow.commit()
            return settings

    async def update_settings(
        self,
        enabled: bool | None = None,
        recipients: Sequence[UUID] | None = None,
        frequency: str | None = None,
        scheduled_time: str | None = None,
        throttling: ThrottlePolicy | None = None,
        rules: Sequence[NotificationRule] | None = None,
        expected_version: int | None = None,
    ) -> NotificationSettings:
        """Apply the provided fields; omitted (None) fields stay as they are.

        Raises:
            SettingsConflictError: ``expected_version`` is stale.
        """
        async with self._uow_factory() as uow:
            settings = await self._load_or_create(uow)
            if expected_version is not None and expected_version != settings.version:
                raise SettingsConflictError(expected_version)

            if enabled is not None:
                settings.enabled = enabled
            if recipients is not None:
                settings.recipients = await self._validate_recipients(uow, recipients)
            if frequency is not None:
                if frequency not in FREQUENCY_VALUES:
                    raise InvalidNotificationSettingsError(
                        f"Unknown frequency: {frequency}", field="frequency"
                    )
                settings.frequency = frequency
            if scheduled_time is not None:
                if not SCHEDULED_TIME_RE.match(scheduled_time):
                    raise InvalidNotificationSettingsError(
                        f"{scheduled_time} is not a valid time format. Use HH:MM.",
                        field="scheduled_time",
                    )
                settings.scheduled_time = scheduled_time
            if throttling is not None:
                if throttling.max_emails_per_hour < 1:
                    raise InvalidNotificationSettingsError(
                        "max_emails_per_hour must be at least 1", field="throttling"
                    )
                settings.throttling = throttling
            if rules is not None:
                validated = [validate_rule(rule) for rule in rules]
                ids = [rule.id for rule in validated]
                if len(ids) != len(set(ids)):
                    raise InvalidNotificationRuleError("Rule ids must be unique", field="id")
                settings.rules = validated

            saved = await uow.notification_settings.save(settings)
            await uow.commit()

        logger.info(
            "notification_settings_updated",
            enabled=saved.enabled,
            frequency=saved.frequency,
            rules=len(saved.rules),
            version=saved.version,
        )
        return saved

    # --- Rules ---

    async def add_rule(self, rule: NotificationRule) -> NotificationRule:
        """Append a rule to the end of the rule list."""
        validate_rule(rule)
        async with self._uow_factory() as uow:
            settings = await self._load_or_create(uow)
            if settings.find_rule(rule.id) is not None:
                raise InvalidNotificationRuleError(
                    f"A rule with id {rule.id} already exists", field="id"
                )
            settings.rules.append(rule)
            await uow.notification_settings.save(settings)
            await uow.commit()

        logger.info("notification_rule_added", rule_id=str(rule.id), name=rule.name)
        return rule

    async def update_rule(
        self,
        rule_id: UUID,
        name: str | None = None,
        enabled: bool | None = None,
        action_types: Sequence[str] | None = None,
        resource_types: Sequence[str] | None = None,
        trigger_roles: Sequence[str] | None = None,
        trigger_user_ids: Sequence[UUID] | None = None,
        priority: str | None = None,
        include_details: bool | None = None,
        subject_template: str | None = None,
    ) -> NotificationRule:
        """Update the provided fields of one rule."""
        async with self._uow_factory() as uow:
            settings = await self._load_or_create(uow)
            rule = settings.find_rule(rule_id)
            if rule is None:
                raise NotificationRuleNotFoundError(str(rule_id))

            if name is not None:
                rule.name = name
            if enabled is not None:
                rule.enabled = enabled
            if action_types is not None:
                rule.action_types = list(action_types)
            if resource_types is not None:
                rule.resource_types = list(resource_types)
            if trigger_roles is not None:
                rule.trigger_roles = list(trigger_roles)
            if trigger_user_ids is not None:
                rule.trigger_user_ids = list(trigger_user_ids)
            if priority is not None:
                rule.priority = priority
            if include_details is not None:
                rule.include_details = include_details
            if subject_template is not None:
                rule.subject_template = subject_template
            validate_rule(rule)

            await uow.notification_settings.save(settings)
            await uow.commit()

        logger.info("notification_rule_updated", rule_id=str(rule_id))
        return rule

    async def delete_rule(self, rule_id: UUID) -> None:
        """Remove one rule."""
        async with self._uow_factory() as uow:
            settings = await self._load_or_create(uow)
            rule = settings.find_rule(rule_id)
            if rule is None:
                raise NotificationRuleNotFoundError(str(rule_id))

            settings.rules.remove(rule)
            await uow.notification_settings.save(settings)
            await uow.commit()

        logger.info("notification_rule_deleted", rule_id=str(rule_id))

    # --- Read helpers ---

    async def get_eligible_recipients(self, current_user_id: UUID) -> list[Profile]:
        """Admins and superAdmins; falls back to the caller when there are none."""
        async with self._uow_factory() as uow:
            admins = await uow.profiles.get_by_roles(sorted(ADMIN_ROLES))
            if admins:
                return admins

            current = await uow.profiles.get(current_user_id)
            return [current] if current else []

    async def get_history(self, limit: int = 50) -> list[NotificationHistoryEntry]:
        """Get the newest history entries."""
        async with self._uow_factory() as uow:
            settings = await uow.notification_settings.get()
            if settings is None:
                return []
            return await uow.notification_settings.get_history(settings.id, limit=limit)

    async def get_profile(self, profile_id: UUID) -> Profile | None:
        async with self._uow_factory() as uow:
            return await uow.profiles.get(profile_id)
