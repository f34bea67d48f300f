"""Per-recipient throttling against the settings history."""

from datetime import datetime, timedelta
from uuid import UUID

from domain.entities.notification import NotificationSettings

THROTTLE_WINDOW = timedelta(hours=1)


def recent_message_count(recipient_id: UUID, settings: NotificationSettings, now: datetime) -> int:
    """Messages attempted to ``recipient_id`` within the rolling window ending at ``now``."""
    cutoff = now - THROTTLE_WINDOW
    return sum(
        entry.recipient_ids.count(recipient_id)
        for entry in settings.history
        if entry.sent_at > cutoff
    )


def allow(
    recipient_id: UUID,
    settings: NotificationSettings,
    now: datetime | None = None,
    pending: int = 0,
) -> bool:
    """Decide whether one more message may go to ``recipient_id``.

    ``pending`` counts messages already attempted to this recipient in the
    current run that are not in the history yet.

    The count lives inside the settings aggregate, so two dispatches
    running at the same moment can each see room for one more message.
    """
    if not settings.throttling.enabled:
        return True

    now = now or datetime.utcnow()
    sent = recent_message_count(recipient_id, settings, now) + pending
    return sent < settings.throttling.max_emails_per_hour
