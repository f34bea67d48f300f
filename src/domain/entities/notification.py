"""Notification settings aggregate, rules, history and value objects."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4

from domain.entities.activity import ActionType, ResourceType

ALL = "ALL"

DEFAULT_SUBJECT_TEMPLATE = "[Media Library] Activity Notification: {{action}} {{resourceType}}"
DEFAULT_SCHEDULED_TIME = "09:00"
DEFAULT_MAX_EMAILS_PER_HOUR = 10


class Frequency(StrEnum):
    """Delivery cadence."""

    IMMEDIATE = "immediate"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


DIGEST_FREQUENCIES = frozenset({Frequency.HOURLY, Frequency.DAILY, Frequency.WEEKLY})


class Priority(StrEnum):
    """Informational rule priority; never gates delivery."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class HistoryKind(StrEnum):
    """Which dispatch path produced a history entry."""

    IMMEDIATE = "immediate"
    DIGEST = "digest"


@dataclass
class NotificationRule:
    """A filter deciding which activity events produce notifications."""

    name: str
    id: UUID = field(default_factory=uuid4)
    enabled: bool = True
    action_types: list[str] = field(default_factory=lambda: [ALL])
    resource_types: list[str] = field(default_factory=lambda: [ALL])
    trigger_roles: list[str] = field(default_factory=lambda: [ALL])
    trigger_user_ids: list[UUID] = field(default_factory=list)
    priority: str = Priority.NORMAL.value
    include_details: bool = True
    subject_template: str = DEFAULT_SUBJECT_TEMPLATE


@dataclass
class ThrottlePolicy:
    """Per-recipient cap on messages within a rolling hour."""

    enabled: bool = True
    max_emails_per_hour: int = DEFAULT_MAX_EMAILS_PER_HOUR


@dataclass
class NotificationHistoryEntry:
    """One audit record per dispatch attempt.

    ``recipient_ids`` holds one id per message attempted, so a digest that
    sends two rule groups to the same admin lists that admin twice.
    ``skipped_recipient_ids`` are recipients held back by throttling.
    """

    sent_at: datetime
    recipient_count: int
    activity_count: int
    id: UUID = field(default_factory=uuid4)
    kind: str = HistoryKind.IMMEDIATE.value
    recipient_ids: list[UUID] = field(default_factory=list)
    skipped_recipient_ids: list[UUID] = field(default_factory=list)


@dataclass
class NotificationSettings:
    """The single global notification configuration + audit aggregate."""

    id: UUID = field(default_factory=uuid4)
    enabled: bool = False
    recipients: list[UUID] = field(default_factory=list)
    frequency: str = Frequency.DAILY.value
    scheduled_time: str = DEFAULT_SCHEDULED_TIME
    rules: list[NotificationRule] = field(default_factory=list)
    throttling: ThrottlePolicy = field(default_factory=ThrottlePolicy)
    last_sent_at: datetime | None = None
    history: list[NotificationHistoryEntry] = field(default_factory=list)
    version: int = 1
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def find_rule(self, rule_id: UUID) -> NotificationRule | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None


def build_default_rule() -> NotificationRule:
    """The rule seeded into freshly created settings."""
    return NotificationRule(
        name="Default Rule",
        enabled=True,
        action_types=[ActionType.CREATE.value, ActionType.DELETE.value],
        resource_types=[ALL],
        trigger_roles=[ALL],
        priority=Priority.NORMAL.value,
        include_details=True,
    )


def build_test_rule() -> NotificationRule:
    """The rule used by the "send test notification" operation."""
    return NotificationRule(
        name="Test Rule",
        action_types=[ALL, ActionType.TEST.value],
        resource_types=[ALL, ResourceType.SYSTEM.value],
        trigger_roles=[ALL],
        include_details=True,
        subject_template="[Media Library] Test Notification",
    )


@dataclass(frozen=True, slots=True)
class MailMessage:
    """Value object handed to the mail sender."""

    to: str
    subject: str
    text_body: str
    html_body: str


@dataclass
class DispatchResult:
    """Outcome of one immediate dispatch."""

    matched_rule_id: UUID | None = None
    sent: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)
    throttled: list[UUID] = field(default_factory=list)
    recorded: bool = False

    @property
    def attempted(self) -> list[UUID]:
        return self.sent + self.failed


@dataclass
class DigestRunResult:
    """Outcome of one digest run."""

    frequency: str
    window_start: datetime | None = None
    window_end: datetime | None = None
    activity_count: int = 0
    group_count: int = 0
    messages_sent: int = 0
    messages_failed: int = 0
    throttled_recipient_ids: list[UUID] = field(default_factory=list)
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None
