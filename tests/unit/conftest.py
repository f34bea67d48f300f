"""Shared fixtures for unit tests."""

import copy
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import pytest

from core.exceptions import MailDeliveryError, SettingsConflictError
from domain.entities.activity import ActivityEvent
from domain.entities.notification import (
    MailMessage,
    NotificationHistoryEntry,
    NotificationRule,
    NotificationSettings,
    ThrottlePolicy,
)
from domain.entities.profile import Profile
from domain.services.digest_scheduler import DigestScheduler
from domain.services.history_recorder import HistoryRecorder
from domain.services.notification_dispatcher import NotificationDispatcher
from domain.services.notification_templates import NotificationTemplates

NOW = datetime(2026, 3, 2, 12, 0, 0)
FRONTEND_URL = "https://admin.example.test"


@dataclass
class FakeStore:
    """State shared by the in-memory repositories of one test."""

    profiles: dict[UUID, Profile] = field(default_factory=dict)
    events: list[ActivityEvent] = field(default_factory=list)
    settings: NotificationSettings | None = None
    history: list[NotificationHistoryEntry] = field(default_factory=list)
    leases: dict[str, tuple[str, datetime]] = field(default_factory=dict)
    # Number of upcoming saves that lose a race against another writer
    pending_conflicts: int = 0


class InMemoryProfileRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def get(self, profile_id: UUID) -> Profile | None:
        return self._store.profiles.get(profile_id)

    async def get_many(self, profile_ids: Iterable[UUID]) -> list[Profile]:
        return [self._store.profiles[i] for i in set(profile_ids) if i in self._store.profiles]

    async def get_by_roles(self, roles: Iterable[str], active_only: bool = True) -> list[Profile]:
        wanted = set(roles)
        return [
            p
            for p in self._store.profiles.values()
            if p.role in wanted and (p.is_active or not active_only)
        ]

    async def create(self, profile: Profile) -> Profile:
        self._store.profiles[profile.id] = profile
        return profile


class InMemoryActivityRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def create(self, event: ActivityEvent) -> ActivityEvent:
        self._store.events.append(copy.deepcopy(event))
        return event

    def _filtered(
        self,
        start: datetime | None,
        end: datetime | None,
        resource_type: str | None,
        action_type: str | None,
    ) -> Any:
        for e in self._store.events:
            if start is not None and e.timestamp < start:
                continue
            if end is not None and e.timestamp > end:
                continue
            if resource_type is not None and e.resource_type != resource_type:
                continue
            if action_type is not None and e.action_type != action_type:
                continue
            yield e

    async def count(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        resource_type: str | None = None,
        action_type: str | None = None,
    ) -> int:
        return sum(1 for _ in self._filtered(start, end, resource_type, action_type))

    # Defined last: the method name shadows the builtin inside the class body
    async def list(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        resource_type: str | None = None,
        action_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ):  # type: ignore[no-untyped-def]
        events = sorted(
            self._filtered(start, end, resource_type, action_type),
            key=lambda e: e.timestamp,
            reverse=True,
        )
        return [copy.deepcopy(e) for e in events[offset : offset + limit]]


class InMemoryNotificationSettingsRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def get(self) -> NotificationSettings | None:
        if self._store.settings is None:
            return None
        settings = copy.deepcopy(self._store.settings)
        settings.history = sorted(copy.deepcopy(self._store.history), key=lambda h: h.sent_at)
        return settings

    async def create(self, settings: NotificationSettings) -> NotificationSettings:
        settings.version = 1
        stored = copy.deepcopy(settings)
        stored.history = []
        self._store.settings = stored
        return settings

    async def save(self, settings: NotificationSettings) -> NotificationSettings:
        current = self._store.settings
        if self._store.pending_conflicts and current is not None:
            self._store.pending_conflicts -= 1
            current.version += 1
            raise SettingsConflictError(settings.version)
        if current is None or current.version != settings.version:
            raise SettingsConflictError(settings.version)

        settings.version += 1
        stored = copy.deepcopy(settings)
        stored.history = []
        self._store.settings = stored
        return settings

    async def add_history_entry(
        self, settings_id: UUID, entry: NotificationHistoryEntry
    ) -> NotificationHistoryEntry:
        self._store.history.append(copy.deepcopy(entry))
        return entry

    async def get_history(
        self, settings_id: UUID, limit: int = 50
    ) -> list[NotificationHistoryEntry]:
        newest = sorted(self._store.history, key=lambda h: h.sent_at, reverse=True)
        return copy.deepcopy(newest[:limit])

    async def prune_history(
        self, settings_id: UUID, older_than: datetime, keep_latest: int
    ) -> int:
        before = len(self._store.history)
        kept = [h for h in self._store.history if h.sent_at >= older_than]
        newest = sorted(kept, key=lambda h: h.sent_at, reverse=True)[:keep_latest]
        survivors = {id(h) for h in newest}
        # Append order is preserved; tests read the latest entry as history[-1]
        self._store.history = [h for h in kept if id(h) in survivors]
        return before - len(self._store.history)

    async def try_acquire_lease(
        self, name: str, holder: str, now: datetime, expires_at: datetime
    ) -> bool:
        current = self._store.leases.get(name)
        if current is not None and current[1] > now:
            return False
        self._store.leases[name] = (holder, expires_at)
        return True

    async def release_lease(self, name: str, holder: str) -> None:
        current = self._store.leases.get(name)
        if current is not None and current[0] == holder:
            del self._store.leases[name]


class FakeUnitOfWork:
    """Fake Unit of Work over in-memory repositories for unit testing."""

    def __init__(self, store: FakeStore) -> None:
        self.activities = InMemoryActivityRepository(store)
        self.profiles = InMemoryProfileRepository(store)
        self.notification_settings = InMemoryNotificationSettingsRepository(store)
        self.committed = False
        self.rolled_back = False

    async def commit(self) -> None:
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True

    async def __aenter__(self) -> "FakeUnitOfWork":
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


class RecordingMailSender:
    """IMailSender that keeps every message; addresses can be set to fail."""

    def __init__(self) -> None:
        self.sent: list[MailMessage] = []
        self.fail_for: set[str] = set()
        self.crash_for: set[str] = set()

    async def send(self, message: MailMessage) -> None:
        if message.to in self.fail_for:
            raise MailDeliveryError(message.to, "mailbox unavailable")
        if message.to in self.crash_for:
            raise RuntimeError("transport exploded")
        self.sent.append(message)

    def to(self, email: str) -> list[MailMessage]:
        return [m for m in self.sent if m.to == email]


class Clock:
    """Settable clock injected into the dispatcher and the scheduler."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


# --- Builders ---


def make_profile(
    store: FakeStore,
    role: str = "superAdmin",
    username: str | None = None,
    email: str | None = None,
    is_active: bool = True,
) -> Profile:
    name = username or f"user-{uuid4().hex[:6]}"
    profile = Profile(
        email=email if email is not None else f"{name}@example.com",
        username=name,
        role=role,
        is_active=is_active,
    )
    store.profiles[profile.id] = profile
    return profile


def make_event(
    action_type: str = "CREATE",
    resource_type: str = "media",
    actor: Profile | None = None,
    actor_role: str | None = "admin",
    timestamp: datetime = NOW,
    **kwargs: Any,
) -> ActivityEvent:
    return ActivityEvent(
        action_type=action_type,
        resource_type=resource_type,
        resource_id=kwargs.pop("resource_id", "res-1"),
        actor_id=actor.id if actor else kwargs.pop("actor_id", uuid4()),
        actor_username=actor.username if actor else kwargs.pop("actor_username", "someone"),
        actor_role=actor.role if actor else actor_role,
        details=kwargs.pop("details", f"{action_type} on {resource_type}"),
        timestamp=timestamp,
        **kwargs,
    )


def make_settings(
    store: FakeStore,
    rules: list[NotificationRule],
    recipients: list[Profile],
    frequency: str = "immediate",
    enabled: bool = True,
    max_emails_per_hour: int = 10,
    throttling_enabled: bool = True,
    last_sent_at: datetime | None = None,
) -> NotificationSettings:
    store.settings = NotificationSettings(
        enabled=enabled,
        recipients=[p.id for p in recipients],
        frequency=frequency,
        rules=rules,
        throttling=ThrottlePolicy(
            enabled=throttling_enabled, max_emails_per_hour=max_emails_per_hour
        ),
        last_sent_at=last_sent_at,
    )
    return store.settings


# --- Fixtures ---


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def uow(store: FakeStore) -> FakeUnitOfWork:
    """Create a fresh FakeUnitOfWork."""
    return FakeUnitOfWork(store)


@pytest.fixture
def uow_factory(store: FakeStore) -> Callable[[], FakeUnitOfWork]:
    return lambda: FakeUnitOfWork(store)


@pytest.fixture
def mail_sender() -> RecordingMailSender:
    return RecordingMailSender()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def templates() -> NotificationTemplates:
    return NotificationTemplates(frontend_url=FRONTEND_URL)


@pytest.fixture
def history_recorder(uow_factory: Callable[[], FakeUnitOfWork]) -> HistoryRecorder:
    return HistoryRecorder(uow_factory, retention_days=90, max_entries=500)


@pytest.fixture
def dispatcher(
    uow_factory: Callable[[], FakeUnitOfWork],
    mail_sender: RecordingMailSender,
    templates: NotificationTemplates,
    history_recorder: HistoryRecorder,
    clock: Clock,
) -> NotificationDispatcher:
    return NotificationDispatcher(
        uow_factory,
        mail_sender=mail_sender,
        templates=templates,
        history_recorder=history_recorder,
        clock=clock,
    )


@pytest.fixture
def scheduler(
    uow_factory: Callable[[], FakeUnitOfWork],
    mail_sender: RecordingMailSender,
    templates: NotificationTemplates,
    history_recorder: HistoryRecorder,
    clock: Clock,
) -> DigestScheduler:
    return DigestScheduler(
        uow_factory,
        mail_sender=mail_sender,
        templates=templates,
        history_recorder=history_recorder,
        event_cap=1000,
        clock=clock,
    )
