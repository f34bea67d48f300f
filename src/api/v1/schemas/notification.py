"""Pydantic schemas for notification settings and digest API."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from domain.entities.activity import ActionType, ResourceType, UserRole
from domain.entities.notification import DEFAULT_SUBJECT_TEMPLATE, Frequency, Priority

SCHEDULED_TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"

AllSentinel = Literal["ALL"]


# --- Rules ---


class NotificationRuleBase(BaseModel):
    """Base schema for a notification rule."""

    name: str = Field(..., min_length=1, max_length=255)
    enabled: bool = True
    action_types: list[ActionType | AllSentinel] = Field(
        default_factory=lambda: ["ALL"], min_length=1
    )
    resource_types: list[ResourceType | AllSentinel] = Field(
        default_factory=lambda: ["ALL"], min_length=1
    )
    trigger_roles: list[UserRole | AllSentinel] = Field(
        default_factory=lambda: ["ALL"], min_length=1
    )
    trigger_user_ids: list[UUID] = Field(default_factory=list)
    priority: Priority = Priority.NORMAL
    include_details: bool = True
    subject_template: str = Field(DEFAULT_SUBJECT_TEMPLATE, min_length=1, max_length=500)


class NotificationRuleCreate(NotificationRuleBase):
    """Schema for adding a rule, or for a rule inside a full settings update.

    ``id`` keeps an existing rule's identity when the whole list is replaced.
    """

    id: UUID | None = None


class NotificationRuleUpdate(BaseModel):
    """Schema for updating a rule (all fields optional)."""

    name: str | None = Field(None, min_length=1, max_length=255)
    enabled: bool | None = None
    action_types: list[ActionType | AllSentinel] | None = Field(None, min_length=1)
    resource_types: list[ResourceType | AllSentinel] | None = Field(None, min_length=1)
    trigger_roles: list[UserRole | AllSentinel] | None = Field(None, min_length=1)
    trigger_user_ids: list[UUID] | None = None
    priority: Priority | None = None
    include_details: bool | None = None
    subject_template: str | None = Field(None, min_length=1, max_length=500)


class NotificationRuleResponse(BaseModel):
    """Schema for a notification rule response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    enabled: bool
    action_types: list[str]
    resource_types: list[str]
    trigger_roles: list[str]
    trigger_user_ids: list[UUID]
    priority: str
    include_details: bool
    subject_template: str


class NotificationRuleDetailResponse(BaseModel):
    """Schema for single rule response."""

    data: NotificationRuleResponse


# --- Settings ---


class ThrottlingSchema(BaseModel):
    """Per-recipient hourly cap."""

    model_config = ConfigDict(from_attributes=True)

    enabled: bool = True
    max_emails_per_hour: int = Field(10, ge=1, le=1000)


class NotificationSettingsUpdate(BaseModel):
    """Schema for updating global settings (all fields optional).

    Send back ``version`` from the last read to reject the write when
    somebody else saved in between.
    """

    enabled: bool | None = None
    recipients: list[UUID] | None = None
    frequency: Frequency | None = None
    scheduled_time: str | None = Field(None, pattern=SCHEDULED_TIME_PATTERN)
    throttling: ThrottlingSchema | None = None
    rules: list[NotificationRuleCreate] | None = None
    version: int | None = Field(None, ge=1)


class NotificationSettingsResponse(BaseModel):
    """Schema for global notification settings response."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "enabled": True,
                "recipients": ["456e4567-e89b-12d3-a456-426614174000"],
                "frequency": "daily",
                "scheduled_time": "09:00",
                "rules": [
                    {
                        "id": "789e4567-e89b-12d3-a456-426614174000",
                        "name": "Default Rule",
                        "enabled": True,
                        "action_types": ["CREATE", "DELETE"],
                        "resource_types": ["ALL"],
                        "trigger_roles": ["ALL"],
                        "trigger_user_ids": [],
                        "priority": "normal",
                        "include_details": True,
                        "subject_template": DEFAULT_SUBJECT_TEMPLATE,
                    }
                ],
                "throttling": {"enabled": True, "max_emails_per_hour": 10},
                "last_sent_at": None,
                "version": 1,
                "updated_at": "2026-01-28T10:00:00",
            }
        },
    )

    id: UUID
    enabled: bool
    recipients: list[UUID]
    frequency: str
    scheduled_time: str
    rules: list[NotificationRuleResponse]
    throttling: ThrottlingSchema
    last_sent_at: datetime | None
    version: int
    updated_at: datetime


class NotificationSettingsDetailResponse(BaseModel):
    """Schema for the settings envelope."""

    data: NotificationSettingsResponse


# --- Recipients, history, test ---


class EligibleRecipientResponse(BaseModel):
    """A profile that may be picked as a recipient."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    username: str
    display_name: str
    role: str


class EligibleRecipientListResponse(BaseModel):
    """Schema for eligible recipient list."""

    data: list[EligibleRecipientResponse]


class NotificationHistoryEntryResponse(BaseModel):
    """Schema for one history entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: str
    sent_at: datetime
    recipient_count: int
    activity_count: int
    recipient_ids: list[UUID]
    skipped_recipient_ids: list[UUID]


class NotificationHistoryListResponse(BaseModel):
    """Schema for history list response."""

    data: list[NotificationHistoryEntryResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class SendTestNotificationRequest(BaseModel):
    """Schema for a test notification; defaults to mailing the caller."""

    recipient_ids: list[UUID] | None = Field(None, min_length=1)


class SendTestNotificationResponse(BaseModel):
    """Outcome of a test notification."""

    message: str
    sent: list[UUID]
    failed: list[UUID]


# --- Digests ---


class DigestRunResponse(BaseModel):
    """Outcome of one digest run."""

    model_config = ConfigDict(from_attributes=True)

    frequency: str
    skipped: bool
    skipped_reason: str | None
    window_start: datetime | None
    window_end: datetime | None
    activity_count: int
    group_count: int
    messages_sent: int
    messages_failed: int
    throttled_recipient_ids: list[UUID]
