"""Unit tests for NotificationDispatcher."""

from datetime import timedelta

import pytest

from domain.entities.notification import HistoryKind, NotificationHistoryEntry, NotificationRule
from domain.services.notification_dispatcher import NotificationDispatcher
from tests.unit.conftest import (
    NOW,
    Clock,
    FakeStore,
    RecordingMailSender,
    make_event,
    make_profile,
    make_settings,
)

# --- on_activity ---


class TestOnActivity:
    @pytest.mark.asyncio
    async def test_mails_every_recipient_and_records_history(
        self, dispatcher: NotificationDispatcher, store: FakeStore, mail_sender: RecordingMailSender
    ):
        a = make_profile(store, username="alice")
        b = make_profile(store, username="bob", role="admin")
        make_settings(store, [NotificationRule(name="Everything")], [a, b])

        result = await dispatcher.on_activity(make_event("UPLOAD"))

        assert result is not None
        assert result.sent == [a.id, b.id]
        assert result.recorded
        assert [m.to for m in mail_sender.sent] == [a.email, b.email]
        assert len(store.history) == 1
        entry = store.history[0]
        assert entry.kind == HistoryKind.IMMEDIATE.value
        assert entry.recipient_count == 2
        assert entry.activity_count == 1
        assert store.settings is not None
        assert store.settings.last_sent_at == NOW

    @pytest.mark.asyncio
    async def test_uses_rule_subject(
        self, dispatcher: NotificationDispatcher, store: FakeStore, mail_sender: RecordingMailSender
    ):
        admin = make_profile(store)
        rule = NotificationRule(name="Deletes", subject_template="Gone: {{resourceType}}")
        make_settings(store, [rule], [admin])

        await dispatcher.on_activity(make_event("DELETE", "tag"))

        assert mail_sender.sent[0].subject == "Gone: tag"

    @pytest.mark.asyncio
    async def test_first_matching_rule_only(
        self, dispatcher: NotificationDispatcher, store: FakeStore, mail_sender: RecordingMailSender
    ):
        admin = make_profile(store)
        first = NotificationRule(name="Deletes", action_types=["DELETE"], subject_template="one")
        second = NotificationRule(name="Everything", subject_template="two")
        make_settings(store, [first, second], [admin])

        result = await dispatcher.on_activity(make_event("DELETE"))

        assert result is not None
        assert result.matched_rule_id == first.id
        assert [m.subject for m in mail_sender.sent] == ["one"]

    @pytest.mark.asyncio
    async def test_nothing_when_not_immediate(
        self, dispatcher: NotificationDispatcher, store: FakeStore, mail_sender: RecordingMailSender
    ):
        admin = make_profile(store)
        make_settings(store, [NotificationRule(name="r")], [admin], frequency="daily")

        assert await dispatcher.on_activity(make_event()) is None
        assert mail_sender.sent == []
        assert store.history == []

    @pytest.mark.asyncio
    async def test_nothing_when_disabled(
        self, dispatcher: NotificationDispatcher, store: FakeStore, mail_sender: RecordingMailSender
    ):
        admin = make_profile(store)
        make_settings(store, [NotificationRule(name="r")], [admin], enabled=False)

        assert await dispatcher.on_activity(make_event()) is None
        assert mail_sender.sent == []

    @pytest.mark.asyncio
    async def test_nothing_without_settings(
        self, dispatcher: NotificationDispatcher, mail_sender: RecordingMailSender
    ):
        assert await dispatcher.on_activity(make_event()) is None
        assert mail_sender.sent == []

    @pytest.mark.asyncio
    async def test_unmatched_event_sends_nothing(
        self, dispatcher: NotificationDispatcher, store: FakeStore, mail_sender: RecordingMailSender
    ):
        admin = make_profile(store)
        make_settings(store, [NotificationRule(name="Logins", action_types=["LOGIN"])], [admin])

        assert await dispatcher.on_activity(make_event("UPLOAD")) is None
        assert mail_sender.sent == []

    @pytest.mark.asyncio
    async def test_no_history_without_recipients(
        self, dispatcher: NotificationDispatcher, store: FakeStore, mail_sender: RecordingMailSender
    ):
        inactive = make_profile(store, is_active=False)
        make_settings(store, [NotificationRule(name="r")], [inactive])

        result = await dispatcher.on_activity(make_event())

        assert result is not None
        assert result.sent == []
        assert not result.recorded
        assert store.history == []

    @pytest.mark.asyncio
    async def test_throttled_recipient_is_skipped_and_listed(
        self,
        dispatcher: NotificationDispatcher,
        store: FakeStore,
        mail_sender: RecordingMailSender,
    ):
        busy = make_profile(store, username="busy")
        quiet = make_profile(store, username="quiet")
        make_settings(store, [NotificationRule(name="r")], [busy, quiet], max_emails_per_hour=1)
        store.history.append(
            NotificationHistoryEntry(
                sent_at=NOW - timedelta(minutes=10),
                recipient_count=1,
                activity_count=1,
                recipient_ids=[busy.id],
            )
        )

        result = await dispatcher.on_activity(make_event())

        assert result is not None
        assert result.throttled == [busy.id]
        assert [m.to for m in mail_sender.sent] == [quiet.email]
        assert store.history[-1].skipped_recipient_ids == [busy.id]

    @pytest.mark.asyncio
    async def test_throttle_limit_reached_across_events(
        self,
        dispatcher: NotificationDispatcher,
        store: FakeStore,
        mail_sender: RecordingMailSender,
        clock: Clock,
    ):
        admin = make_profile(store)
        make_settings(store, [NotificationRule(name="r")], [admin], max_emails_per_hour=2)

        for _ in range(3):
            await dispatcher.on_activity(make_event())
            clock.advance(timedelta(minutes=1))

        assert len(mail_sender.sent) == 2
        # A throttled-only dispatch is still audited
        assert len(store.history) == 3
        assert store.history[-1].recipient_ids == []
        assert store.history[-1].skipped_recipient_ids == [admin.id]

    @pytest.mark.asyncio
    async def test_throttle_window_rolls_over(
        self,
        dispatcher: NotificationDispatcher,
        store: FakeStore,
        mail_sender: RecordingMailSender,
        clock: Clock,
    ):
        admin = make_profile(store)
        make_settings(store, [NotificationRule(name="r")], [admin], max_emails_per_hour=1)

        await dispatcher.on_activity(make_event())
        clock.advance(timedelta(minutes=61))
        await dispatcher.on_activity(make_event())

        assert len(mail_sender.sent) == 2

    @pytest.mark.asyncio
    async def test_one_failed_recipient_does_not_stop_the_rest(
        self,
        dispatcher: NotificationDispatcher,
        store: FakeStore,
        mail_sender: RecordingMailSender,
    ):
        broken = make_profile(store, username="broken")
        crashing = make_profile(store, username="crashing")
        fine = make_profile(store, username="fine")
        make_settings(store, [NotificationRule(name="r")], [broken, crashing, fine])
        mail_sender.fail_for.add(broken.email)
        mail_sender.crash_for.add(crashing.email)

        result = await dispatcher.on_activity(make_event())

        assert result is not None
        assert result.failed == [broken.id, crashing.id]
        assert result.sent == [fine.id]
        # Failed attempts still count toward throttling
        assert store.history[0].recipient_ids == [fine.id, broken.id, crashing.id]


# --- schedule / drain ---


class TestSchedule:
    @pytest.mark.asyncio
    async def test_background_dispatch_completes_on_drain(
        self,
        dispatcher: NotificationDispatcher,
        store: FakeStore,
        mail_sender: RecordingMailSender,
    ):
        admin = make_profile(store)
        make_settings(store, [NotificationRule(name="r")], [admin])

        task = dispatcher.schedule(make_event())
        await dispatcher.drain()

        assert task.done()
        assert len(mail_sender.sent) == 1

    @pytest.mark.asyncio
    async def test_errors_are_contained(self, dispatcher: NotificationDispatcher, store: FakeStore):
        make_settings(store, [NotificationRule(name="r")], [make_profile(store)])

        async def boom(event):  # type: ignore[no-untyped-def]
            raise RuntimeError("database gone")

        dispatcher.on_activity = boom  # type: ignore[method-assign]

        task = dispatcher.schedule(make_event())
        await dispatcher.drain()

        assert task.result() is None


# --- send_test ---


class TestSendTest:
    @pytest.mark.asyncio
    async def test_defaults_to_actor(
        self,
        dispatcher: NotificationDispatcher,
        store: FakeStore,
        mail_sender: RecordingMailSender,
    ):
        actor = make_profile(store, username="alice")

        result = await dispatcher.send_test(actor)

        assert result.sent == [actor.id]
        assert mail_sender.sent[0].to == actor.email
        assert mail_sender.sent[0].subject == "[Media Library] Test Notification"
        assert "This is a test notification" in mail_sender.sent[0].text_body

    @pytest.mark.asyncio
    async def test_ignores_disabled_settings_and_throttling(
        self,
        dispatcher: NotificationDispatcher,
        store: FakeStore,
        mail_sender: RecordingMailSender,
    ):
        actor = make_profile(store)
        make_settings(
            store,
            [NotificationRule(name="r")],
            [actor],
            enabled=False,
            frequency="daily",
            max_emails_per_hour=1,
        )

        await dispatcher.send_test(actor)
        await dispatcher.send_test(actor)

        assert len(mail_sender.sent) == 2
        assert store.history == []

    @pytest.mark.asyncio
    async def test_explicit_recipients(
        self,
        dispatcher: NotificationDispatcher,
        store: FakeStore,
        mail_sender: RecordingMailSender,
    ):
        actor = make_profile(store)
        other = make_profile(store, role="admin")

        result = await dispatcher.send_test(actor, [other.id])

        assert result.sent == [other.id]
        assert [m.to for m in mail_sender.sent] == [other.email]

    @pytest.mark.asyncio
    async def test_actor_without_email_gets_nothing(
        self,
        dispatcher: NotificationDispatcher,
        store: FakeStore,
        mail_sender: RecordingMailSender,
    ):
        actor = make_profile(store, email="")

        result = await dispatcher.send_test(actor)

        assert result.sent == []
        assert mail_sender.sent == []
