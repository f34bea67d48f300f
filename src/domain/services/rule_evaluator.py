"""Rule evaluation for activity events.

Two modes exist on purpose:

- ``evaluate`` returns the first enabled rule matching a single event and
  drives immediate delivery, so one event is never mailed twice.
- ``group_by_rule`` assigns every event to every enabled rule it matches
  and drives digests, where per-rule sections are what readers want.

Both are pure functions over already loaded settings.
"""

from collections.abc import Collection, Iterable
from uuid import UUID

from domain.entities.activity import (
    ACTION_TYPE_VALUES,
    RESOURCE_TYPE_VALUES,
    USER_ROLE_VALUES,
    ActivityEvent,
)
from domain.entities.notification import ALL, NotificationRule, NotificationSettings


def _matches(value: str | None, allowed: Collection[str], known: frozenset[str]) -> bool:
    # Unknown or missing values fail closed, even against ALL.
    if value is None or value not in known:
        return False
    return ALL in allowed or value in allowed


def rule_matches(rule: NotificationRule, event: ActivityEvent) -> bool:
    """Check the action/resource/role/user constraints of one rule.

    ``rule.enabled`` is not consulted here; callers decide whether disabled
    rules take part.
    """
    if not _matches(event.action_type, rule.action_types, ACTION_TYPE_VALUES):
        return False
    if not _matches(event.resource_type, rule.resource_types, RESOURCE_TYPE_VALUES):
        return False
    if not _matches(event.actor_role, rule.trigger_roles, USER_ROLE_VALUES):
        return False
    if rule.trigger_user_ids and event.actor_id not in rule.trigger_user_ids:
        return False
    return True


def evaluate(event: ActivityEvent, settings: NotificationSettings) -> NotificationRule | None:
    """Return the first enabled rule matching ``event``, or None.

    Always None when notifications are switched off globally.
    """
    if not settings.enabled:
        return None

    for rule in settings.rules:
        if rule.enabled and rule_matches(rule, event):
            return rule
    return None


def group_by_rule(
    events: Iterable[ActivityEvent], settings: NotificationSettings
) -> dict[UUID, list[ActivityEvent]]:
    """Map each enabled rule id to every event that satisfies it.

    Keys follow the stored rule order and every enabled rule gets a key,
    possibly with an empty list. Event order within a group follows the
    input order.
    """
    groups: dict[UUID, list[ActivityEvent]] = {
        rule.id: [] for rule in settings.rules if rule.enabled
    }
    if not groups:
        return groups

    active = [rule for rule in settings.rules if rule.enabled]
    for event in events:
        for rule in active:
            if rule_matches(rule, event):
                groups[rule.id].append(event)
    return groups
