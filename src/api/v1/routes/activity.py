"""Activity log API routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request, status

from api.dependencies.auth import AdminUser, CurrentUser
from api.v1.dependencies import get_activity_service
from api.v1.schemas.activity import (
    ActivityCreate,
    ActivityDetailResponse,
    ActivityListResponse,
    ActivityResponse,
)
from core.exceptions import InsufficientPermissionsError
from core.rate_limit import limiter
from domain.entities.activity import ActionType, ActivityEvent, ResourceType
from domain.services.activity_service import ActivityService

router = APIRouter(prefix="/activity", tags=["activity"])


def _naive_utc(value: datetime | None) -> datetime | None:
    """Timestamps are stored as naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@router.post(
    "",
    response_model=ActivityDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record an activity event",
    responses={
        201: {"description": "Event recorded; notifications are dispatched in the background"},
        403: {"description": "Recording on behalf of another user requires admin"},
        422: {"description": "Validation error"},
    },
)
@limiter.limit("60/minute")  # type: ignore[untyped-decorator]
async def record_activity(
    request: Request,
    body: ActivityCreate,
    user: CurrentUser,
    service: ActivityService = Depends(get_activity_service),
) -> ActivityDetailResponse:
    """
    Record an action performed in the media library.

    The actor defaults to the caller. The response does not wait for any
    notification triggered by the event.
    """
    on_behalf = body.actor_id is not None and body.actor_id != user.id
    if on_behalf and not user.is_admin:
        raise InsufficientPermissionsError(required_role="admin")

    event = ActivityEvent(
        action_type=body.action_type.value,
        resource_type=body.resource_type.value,
        resource_id=body.resource_id,
        resource_slug=body.resource_slug,
        resource_title=body.resource_title,
        details=body.details,
        actor_id=body.actor_id if on_behalf else user.id,
        actor_username="" if on_behalf else (user.display_name or ""),
        actor_role=None if on_behalf else user.role,
    )
    stored = await service.record_and_notify(event)
    return ActivityDetailResponse(data=ActivityResponse.model_validate(stored))


@router.get(
    "",
    response_model=ActivityListResponse,
    summary="Get the admin activity feed",
    responses={
        200: {"description": "Paginated activity feed, newest first"},
        403: {"description": "Admin role required"},
    },
)
@limiter.limit("30/minute")  # type: ignore[untyped-decorator]
async def list_activity(
    request: Request,
    user: AdminUser,
    start: datetime | None = Query(None, description="Inclusive lower bound"),
    end: datetime | None = Query(None, description="Inclusive upper bound"),
    resource_type: ResourceType | None = Query(None),
    action_type: ActionType | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: ActivityService = Depends(get_activity_service),
) -> ActivityListResponse:
    """Get recorded activity, optionally filtered by time window and type."""
    events, total = await service.list_activity(
        start=_naive_utc(start),
        end=_naive_utc(end),
        resource_type=resource_type.value if resource_type else None,
        action_type=action_type.value if action_type else None,
        limit=limit,
        offset=offset,
    )
    return ActivityListResponse(
        data=[ActivityResponse.model_validate(e) for e in events],
        meta={"total": total, "limit": limit, "offset": offset},
    )
