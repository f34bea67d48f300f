"""Activity event domain entity and enumerations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4


class ActionType(StrEnum):
    """Tracked actions. Values are stored and matched verbatim."""

    UPLOAD = "UPLOAD"
    DELETE = "DELETE"
    EDIT = "EDIT"
    CREATE = "CREATE"
    VIEW = "VIEW"
    APPROVAL_STATUS_CHANGE = "APPROVAL_STATUS_CHANGE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PROFILE_UPDATE = "PROFILE_UPDATE"
    FAILED_LOGIN = "FAILED_LOGIN"
    # Only produced by the "send test notification" operation
    TEST = "TEST"


class ResourceType(StrEnum):
    """Kinds of resources an action can target."""

    MEDIA = "media"
    MEDIA_TYPE = "mediaType"
    USER = "user"
    SYSTEM = "system"
    TAG = "tag"
    TAG_CATEGORY = "tagCategory"


class UserRole(StrEnum):
    """Application roles, as carried on profiles and events."""

    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "superAdmin"


ACTION_TYPE_VALUES = frozenset(a.value for a in ActionType)
RESOURCE_TYPE_VALUES = frozenset(r.value for r in ResourceType)
USER_ROLE_VALUES = frozenset(r.value for r in UserRole)
ADMIN_ROLES = frozenset({UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value})


@dataclass
class ActivityEvent:
    """A single recorded action, enriched with the actor's identity and role.

    ``action_type``, ``resource_type`` and ``actor_role`` are plain strings
    because events arrive from outside the engine; the rule evaluator treats
    any value outside the enumerations above as non-matching.
    """

    action_type: str
    resource_type: str
    resource_id: str
    actor_id: UUID
    actor_username: str
    details: str
    id: UUID = field(default_factory=uuid4)
    actor_role: str | None = None
    resource_slug: str | None = None
    resource_title: str | None = None
    timestamp: datetime = field(default_factory=datetime.utcnow)
