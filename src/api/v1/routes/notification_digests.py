"""Digest trigger routes for the external scheduler."""

from fastapi import APIRouter, Depends, Request

from api.dependencies.auth import AdminUser
from api.v1.dependencies import get_digest_scheduler
from api.v1.schemas.notification import DigestRunResponse
from core.rate_limit import limiter
from domain.services.digest_scheduler import DigestScheduler

router = APIRouter(prefix="/admin/notification-digests", tags=["notification-digests"])


@router.post(
    "/{frequency}/run",
    response_model=DigestRunResponse,
    summary="Run a digest batch",
    responses={
        200: {"description": "Digest ran, or was skipped with a reason"},
        400: {"description": "Frequency is not hourly, daily or weekly"},
        403: {"description": "Admin role required"},
    },
)
@limiter.limit("10/minute")  # type: ignore[untyped-decorator]
async def run_digest(
    request: Request,
    frequency: str,
    user: AdminUser,
    scheduler: DigestScheduler = Depends(get_digest_scheduler),
) -> DigestRunResponse:
    """
    Aggregate activity since the last send and mail one digest per rule.

    Meant to be called by a cron-like job once per period. A run is skipped
    when the settings are disabled or use another frequency, when there was
    no activity, or while another run for the same frequency holds the lease.
    """
    result = await scheduler.run_batch(frequency)
    return DigestRunResponse.model_validate(result)
