"""API v1 router configuration."""

from fastapi import APIRouter

from api.v1.routes.activity import router as activity_router
from api.v1.routes.notification_digests import router as notification_digests_router
from api.v1.routes.notification_settings import router as notification_settings_router

router = APIRouter()
router.include_router(activity_router)
router.include_router(notification_settings_router)
router.include_router(notification_digests_router)
