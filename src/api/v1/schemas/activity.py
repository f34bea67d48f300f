"""Pydantic schemas for Activity API."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.entities.activity import ActionType, ResourceType


class ActivityCreate(BaseModel):
    """Schema for recording an activity event.

    The actor defaults to the caller; only admins may record on behalf of
    another user.
    """

    action_type: ActionType
    resource_type: ResourceType
    resource_id: str = Field(..., min_length=1, max_length=255)
    resource_slug: str | None = Field(None, max_length=255)
    resource_title: str | None = Field(None, max_length=500)
    details: str = Field("", max_length=5000)
    actor_id: UUID | None = None

    @field_validator("action_type")
    @classmethod
    def reject_test_action(cls, v: ActionType) -> ActionType:
        """TEST is reserved for the synthetic event behind test notifications."""
        if v == ActionType.TEST:
            raise ValueError("TEST is reserved for test notifications")
        return v


class ActivityResponse(BaseModel):
    """Schema for an activity log entry response."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "action_type": "UPLOAD",
                "resource_type": "media",
                "resource_id": "665f1c2e9b1d",
                "resource_slug": "sunset-over-lake",
                "resource_title": "Sunset over lake",
                "actor_id": "456e4567-e89b-12d3-a456-426614174000",
                "actor_username": "jane",
                "actor_role": "admin",
                "details": "Uploaded sunset.jpg",
                "timestamp": "2026-01-28T10:00:00",
            }
        },
    )

    id: UUID
    action_type: str
    resource_type: str
    resource_id: str
    resource_slug: str | None = None
    resource_title: str | None = None
    actor_id: UUID
    actor_username: str
    actor_role: str | None = None
    details: str
    timestamp: datetime


class ActivityDetailResponse(BaseModel):
    """Schema for a single activity entry response."""

    data: ActivityResponse


class ActivityListResponse(BaseModel):
    """Schema for paginated activity log response."""

    data: list[ActivityResponse]
    meta: dict[str, Any] = Field(default_factory=dict)
