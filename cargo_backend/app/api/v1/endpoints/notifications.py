"""
Branch Notification API Endpoints.

Manual trigger for the branch-arrival invoices posted to Telegram.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_backend.app.core.config import settings
from cargo_backend.app.core.dependencies import (
    get_current_actor,
    get_notification_sink,
    get_settings_provider,
)
from cargo_backend.app.core.exceptions import InvalidRequestError
from cargo_backend.app.core.guards import branch_scope
from cargo_backend.app.db.session import get_db
from cargo_backend.app.domain.notifications.branch_dispatcher import BranchNotificationDispatcher
from cargo_backend.app.schemas.actor import Actor
from cargo_backend.app.schemas.notification import NotifyResult
from cargo_backend.app.services.notification_sink import NotificationSink
from cargo_backend.app.services.settings_provider import SettingsProvider

router = APIRouter(prefix="/tracking", tags=["Tracking - Notifications"])


@router.post("/notify-arrivals", response_model=NotifyResult)
async def notify_arrivals(
    branch_id: Optional[int] = Query(None, description="Target branch (SUPERADMIN only)"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
    settings_provider: SettingsProvider = Depends(get_settings_provider)
):
    """
    Send arrival invoices for the caller's branch.

    Branch ADMINs always notify their own branch; a SUPERADMIN must name one.
    """
    scope = branch_scope(actor)
    target_branch = scope if scope is not None else branch_id or actor.branch_id
    if target_branch is None:
        raise InvalidRequestError("branch_id is required")

    dispatcher = BranchNotificationDispatcher(db, sink, settings_provider, settings.telegram_chat_id)
    return await dispatcher.notify_branch_arrivals(target_branch)
