"""
Branch Notification Dispatcher (Domain Logic).

Groups parcels that arrived at a branch by owner and posts one invoice per
owner to the branch's Telegram topic. Items are flagged as notified only
after the sink confirms delivery, so a failed send is retried next run.
"""

import html
import logging
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_backend.app.models.branch import Branch
from cargo_backend.app.models.tracking_item import TrackingItem
from cargo_backend.app.models.user import User
from cargo_backend.app.repositories.tracking_items import TrackingItemRepository
from cargo_backend.app.schemas.notification import NotifyResult
from cargo_backend.app.services.notification_sink import NotificationSink
from cargo_backend.app.services.settings_provider import SettingsProvider

logger = logging.getLogger("cargo.notifications")


def build_invoice_message(
    user: User,
    items: List[TrackingItem],
    branch: Branch,
    price_per_kg: float,
    dollar_rate: float
) -> str:
    """
    Invoice text (Telegram HTML) for one owner's arrived parcels.

    Items without a weight count as 0 kg and are listed as "weight unknown".
    """
    name = html.escape(user.name or "Customer")
    user_code = html.escape(user.user_code or f"ID:{user.id}")
    if user.telegram_username:
        username = user.telegram_username.lstrip("@")
        mention = f"@{html.escape(username)}"
    else:
        mention = f"<b>{name}</b>"

    total_weight = 0.0
    lines = []
    for idx, item in enumerate(items, start=1):
        weight = float(item.weight) if item.weight else 0.0
        total_weight += weight
        weight_text = f"{weight:g} kg" if weight > 0 else "weight unknown"
        lines.append(
            f"{idx}. <b>{html.escape(item.tracking_code)}</b> - "
            f"{html.escape(item.description or '')} - {weight_text}"
        )

    cost_usd = total_weight * price_per_kg
    cost_local = round(cost_usd * dollar_rate)

    return "\n".join([
        f"📦 {mention} ({user_code})",
        "",
        "Your parcels have arrived at the branch:",
        "",
        *lines,
        "",
        f"📊 Total: <b>{len(items)}</b> item(s), <b>{total_weight:.1f}</b> kg",
        f"💰 Cost: {total_weight:.1f} × ${price_per_kg:g} = <b>${cost_usd:.1f}</b> (≈ {cost_local:,} ₸)",
        "",
        f"📍 {html.escape(branch.name)}",
    ])


class BranchNotificationDispatcher:

    def __init__(
        self,
        db: AsyncSession,
        sink: NotificationSink,
        settings_provider: SettingsProvider,
        channel_id: Optional[str]
    ):
        self.db = db
        self.sink = sink
        self.settings_provider = settings_provider
        self.channel_id = channel_id
        self.items = TrackingItemRepository(db)

    async def notify_branch_arrivals(self, branch_id: int) -> NotifyResult:
        """
        Send arrival invoices for every un-notified ARRIVED_BRANCH item in a branch.

        Returns:
            Counts of owners and items whose invoice was delivered
        """
        branch = await self.db.get(Branch, branch_id)
        if branch is None:
            logger.warning("Branch %s not found, no arrival notifications sent", branch_id)
            return NotifyResult()

        if not self.channel_id:
            logger.warning("Telegram chat id is not configured, no arrival notifications sent")
            return NotifyResult()

        pending = await self.items.pending_branch_arrivals(branch_id)
        if not pending:
            return NotifyResult()

        groups = {}
        for item in pending:
            groups.setdefault(item.created_by_user_id, []).append(item)

        price_per_kg, dollar_rate = await self.settings_provider.get_pricing()
        branch_name, thread_id = branch.name, branch.telegram_thread_id

        result = NotifyResult()
        for user_id, items in groups.items():
            user = await self.db.get(User, user_id)
            if user is None:
                logger.warning("Owner %s of %d arrived item(s) not found, skipped", user_id, len(items))
                continue

            message = build_invoice_message(user, items, branch, price_per_kg, dollar_rate)
            item_ids = [item.id for item in items]
            try:
                delivered = await self.sink.send(self.channel_id, message, thread_id)
            except Exception:
                logger.exception("Arrival invoice for user %s raised in the sink", user_id)
                delivered = False

            if not delivered:
                logger.warning("Arrival invoice for user %s in branch %s was not delivered", user_id, branch_name)
                continue

            await self.items.mark_notified(item_ids)
            await self.db.commit()
            result.users_notified += 1
            result.items_notified += len(item_ids)

        logger.info(
            "Branch %s arrival notifications: %d user(s), %d item(s)",
            branch_name, result.users_notified, result.items_notified
        )
        return result
