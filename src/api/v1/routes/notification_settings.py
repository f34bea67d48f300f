"""Notification settings API routes (admin only)."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from api.dependencies.auth import AdminUser
from api.v1.dependencies import get_notification_dispatcher, get_notification_settings_service
from api.v1.schemas.notification import (
    EligibleRecipientListResponse,
    EligibleRecipientResponse,
    NotificationHistoryEntryResponse,
    NotificationHistoryListResponse,
    NotificationRuleCreate,
    NotificationRuleDetailResponse,
    NotificationRuleResponse,
    NotificationRuleUpdate,
    NotificationSettingsDetailResponse,
    NotificationSettingsResponse,
    NotificationSettingsUpdate,
    SendTestNotificationRequest,
    SendTestNotificationResponse,
)
from core.rate_limit import limiter
from domain.entities.notification import NotificationRule, ThrottlePolicy
from domain.services.notification_dispatcher import NotificationDispatcher
from domain.services.notification_settings_service import NotificationSettingsService

router = APIRouter(prefix="/admin/notification-settings", tags=["notification-settings"])


def _values(items: list | None) -> list[str] | None:
    """Enum members and the ALL sentinel both reduce to their string value."""
    return [str(item) for item in items] if items is not None else None


def _rule_from_body(body: NotificationRuleCreate) -> NotificationRule:
    rule = NotificationRule(
        name=body.name,
        enabled=body.enabled,
        action_types=_values(body.action_types) or [],
        resource_types=_values(body.resource_types) or [],
        trigger_roles=_values(body.trigger_roles) or [],
        trigger_user_ids=list(body.trigger_user_ids),
        priority=str(body.priority),
        include_details=body.include_details,
        subject_template=body.subject_template,
    )
    if body.id is not None:
        rule.id = body.id
    return rule


@router.get(
    "",
    response_model=NotificationSettingsDetailResponse,
    summary="Get notification settings",
    responses={
        200: {"description": "Global settings; created with defaults on first access"},
        403: {"description": "Admin role required"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_notification_settings(
    request: Request,
    user: AdminUser,
    service: NotificationSettingsService = Depends(get_notification_settings_service),
) -> NotificationSettingsDetailResponse:
    """Get the global notification settings."""
    settings = await service.get_settings()
    return NotificationSettingsDetailResponse(
        data=NotificationSettingsResponse.model_validate(settings)
    )


@router.put(
    "",
    response_model=NotificationSettingsDetailResponse,
    summary="Update notification settings",
    responses={
        200: {"description": "Settings updated"},
        400: {"description": "Invalid settings"},
        403: {"description": "Admin role required"},
        409: {"description": "Settings were changed since `version` was read"},
        422: {"description": "Validation error"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def update_notification_settings(
    request: Request,
    body: NotificationSettingsUpdate,
    user: AdminUser,
    service: NotificationSettingsService = Depends(get_notification_settings_service),
) -> NotificationSettingsDetailResponse:
    """
    Update the global notification settings.

    Omitted fields keep their current value. `rules`, when given, replaces
    the whole rule list in the given order.
    """
    settings = await service.update_settings(
        enabled=body.enabled,
        recipients=body.recipients,
        frequency=str(body.frequency) if body.frequency else None,
        scheduled_time=body.scheduled_time,
        throttling=(
            ThrottlePolicy(
                enabled=body.throttling.enabled,
                max_emails_per_hour=body.throttling.max_emails_per_hour,
            )
            if body.throttling
            else None
        ),
        rules=[_rule_from_body(r) for r in body.rules] if body.rules is not None else None,
        expected_version=body.version,
    )
    return NotificationSettingsDetailResponse(
        data=NotificationSettingsResponse.model_validate(settings)
    )


@router.post(
    "/rules",
    response_model=NotificationRuleDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a notification rule",
    responses={
        201: {"description": "Rule appended to the rule list"},
        400: {"description": "Invalid rule"},
        403: {"description": "Admin role required"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def add_notification_rule(
    request: Request,
    body: NotificationRuleCreate,
    user: AdminUser,
    service: NotificationSettingsService = Depends(get_notification_settings_service),
) -> NotificationRuleDetailResponse:
    """Add a rule at the end of the rule list."""
    rule = await service.add_rule(_rule_from_body(body))
    return NotificationRuleDetailResponse(data=NotificationRuleResponse.model_validate(rule))


@router.put(
    "/rules/{rule_id}",
    response_model=NotificationRuleDetailResponse,
    summary="Update a notification rule",
    responses={
        200: {"description": "Rule updated"},
        400: {"description": "Invalid rule"},
        403: {"description": "Admin role required"},
        404: {"description": "Rule not found"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def update_notification_rule(
    request: Request,
    rule_id: UUID,
    body: NotificationRuleUpdate,
    user: AdminUser,
    service: NotificationSettingsService = Depends(get_notification_settings_service),
) -> NotificationRuleDetailResponse:
    """Update the provided fields of a rule."""
    rule = await service.update_rule(
        rule_id,
        name=body.name,
        enabled=body.enabled,
        action_types=_values(body.action_types),
        resource_types=_values(body.resource_types),
        trigger_roles=_values(body.trigger_roles),
        trigger_user_ids=body.trigger_user_ids,
        priority=str(body.priority) if body.priority else None,
        include_details=body.include_details,
        subject_template=body.subject_template,
    )
    return NotificationRuleDetailResponse(data=NotificationRuleResponse.model_validate(rule))


@router.delete(
    "/rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification rule",
    responses={
        204: {"description": "Rule deleted"},
        403: {"description": "Admin role required"},
        404: {"description": "Rule not found"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def delete_notification_rule(
    request: Request,
    rule_id: UUID,
    user: AdminUser,
    service: NotificationSettingsService = Depends(get_notification_settings_service),
) -> None:
    """Delete a rule."""
    await service.delete_rule(rule_id)
    return None


@router.get(
    "/eligible-recipients",
    response_model=EligibleRecipientListResponse,
    summary="List eligible recipients",
    responses={
        200: {"description": "Active admins and superAdmins, or the caller when there are none"},
        403: {"description": "Admin role required"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def list_eligible_recipients(
    request: Request,
    user: AdminUser,
    service: NotificationSettingsService = Depends(get_notification_settings_service),
) -> EligibleRecipientListResponse:
    """Get the profiles that can be picked as notification recipients."""
    profiles = await service.get_eligible_recipients(user.id)
    return EligibleRecipientListResponse(
        data=[EligibleRecipientResponse.model_validate(p) for p in profiles]
    )


@router.get(
    "/history",
    response_model=NotificationHistoryListResponse,
    summary="Get notification history",
    responses={
        200: {"description": "Most recent dispatch records, newest first"},
        403: {"description": "Admin role required"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def get_notification_history(
    request: Request,
    user: AdminUser,
    limit: int = Query(50, ge=1, le=500),
    service: NotificationSettingsService = Depends(get_notification_settings_service),
) -> NotificationHistoryListResponse:
    """Get recent notification history entries."""
    entries = await service.get_history(limit=limit)
    return NotificationHistoryListResponse(
        data=[NotificationHistoryEntryResponse.model_validate(e) for e in entries],
        meta={"limit": limit},
    )


@router.post(
    "/test",
    response_model=SendTestNotificationResponse,
    summary="Send a test notification",
    responses={
        200: {"description": "Test message sent through the configured mail backend"},
        403: {"description": "Admin role required"},
    },
)
@limiter.limit("5/minute")  # type: ignore[untyped-decorator]
async def send_test_notification(
    request: Request,
    user: AdminUser,
    body: SendTestNotificationRequest | None = None,
    service: NotificationSettingsService = Depends(get_notification_settings_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SendTestNotificationResponse:
    """
    Send a test notification.

    Ignores `enabled`, `frequency` and throttling, and is not recorded in
    the history. Defaults to mailing the caller.
    """
    actor = await service.get_profile(user.id) or user.as_profile()
    result = await dispatcher.send_test(
        actor, recipient_ids=body.recipient_ids if body else None
    )
    return SendTestNotificationResponse(
        message=f"Test notification sent to {len(result.sent)} recipient(s)",
        sent=result.sent,
        failed=result.failed,
    )
