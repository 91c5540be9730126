"""
Status history log.

Append-only audit trail of tracking status transitions. Writes are pure:
no business validation happens here, callers decide whether a transition
is legitimate before recording it.
"""

from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from cargo_backend.app.models.enums import StatusSource
from cargo_backend.app.models.status_history import StatusHistory
from cargo_backend.app.models.tracking_enums import TrackingStatus


QUICK_UPDATE_NOTE = "Quick update by scan"


async def append_status_change(
    db: AsyncSession,
    tracking_item_id: int,
    previous_status: Optional[TrackingStatus],
    new_status: TrackingStatus,
    changed_by_user_id: int,
    source: StatusSource = StatusSource.MANUAL,
    note: Optional[str] = None
) -> StatusHistory:
    """
    Record one status transition.

    Args:
        db: Database session (the caller owns the transaction)
        tracking_item_id: Item whose status changed
        previous_status: Status before the change, None for registration
        new_status: Status after the change
        changed_by_user_id: Acting user
        source: MANUAL or EXCEL_IMPORT
        note: Optional free text

    Returns:
        The flushed StatusHistory row
    """
    record = StatusHistory(
        tracking_item_id=tracking_item_id,
        previous_status=previous_status,
        new_status=new_status,
        changed_by_user_id=changed_by_user_id,
        source=source,
        note=note
    )
    db.add(record)
    await db.flush()
    return record


async def get_item_history(db: AsyncSession, tracking_item_id: int) -> List[StatusHistory]:
    """All records for an item, oldest first."""
    query = select(StatusHistory).where(
        StatusHistory.tracking_item_id == tracking_item_id
    ).order_by(StatusHistory.created_at.asc(), StatusHistory.id.asc())

    result = await db.execute(query)
    return list(result.scalars().all())
