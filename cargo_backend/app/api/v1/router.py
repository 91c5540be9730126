"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from cargo_backend.app.api.v1.endpoints import manifest, notifications, tracking

router = APIRouter()

# Static /tracking paths first so they never fall into /tracking/{item_id}
router.include_router(manifest.router)
router.include_router(notifications.router)
router.include_router(tracking.router)
