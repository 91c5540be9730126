"""
Tracking item repository.

Storage operations on TrackingItem used by the ledger, the reconciliation
engine and the notification dispatcher. Soft-deleted rows are invisible
to every method except ``list_archived``.
"""

from datetime import datetime, timezone
from typing import Optional, List, Sequence, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from cargo_backend.app.models.tracking_item import TrackingItem
from cargo_backend.app.models.tracking_enums import TrackingStatus


class TrackingItemRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _active():
        return select(TrackingItem).where(TrackingItem.deleted_at.is_(None))

    async def get_scoped(self, item_id: int, branch_id: Optional[int] = None) -> Optional[TrackingItem]:
        """Active item by id, restricted to ``branch_id`` unless it is None."""
        query = self._active().where(TrackingItem.id == item_id)
        if branch_id is not None:
            query = query.where(TrackingItem.branch_id == branch_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_owned(self, item_id: int, user_id: int) -> Optional[TrackingItem]:
        result = await self.db.execute(
            self._active().where(
                TrackingItem.id == item_id,
                TrackingItem.created_by_user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def find_active_by_code(self, tracking_code: str) -> Optional[TrackingItem]:
        result = await self.db.execute(
            self._active().where(TrackingItem.tracking_code == tracking_code)
        )
        return result.scalars().first()

    async def find_all_by_code(self, tracking_code: str) -> List[TrackingItem]:
        result = await self.db.execute(
            self._active().where(TrackingItem.tracking_code == tracking_code).order_by(TrackingItem.id)
        )
        return list(result.scalars().all())

    async def add(self, item: TrackingItem) -> TrackingItem:
        self.db.add(item)
        await self.db.flush()
        return item

    async def compare_and_set_status(
        self,
        item: TrackingItem,
        expected_status: TrackingStatus,
        new_status: TrackingStatus,
        **values,
    ) -> bool:
        """
        Set ``new_status`` (plus any extra column ``values``) only if the row
        still holds ``expected_status``.

        Returns:
            False when another writer changed the status first
        """
        result = await self.db.execute(
            update(TrackingItem)
            .where(
                TrackingItem.id == item.id,
                TrackingItem.current_status == expected_status,
                TrackingItem.deleted_at.is_(None),
            )
            .values(current_status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self.db.refresh(item)
        return True

    async def mark_notified(self, item_ids: Sequence[int]) -> int:
        """Flag every item in one statement."""
        if not item_ids:
            return 0
        result = await self.db.execute(
            update(TrackingItem)
            .where(TrackingItem.id.in_(list(item_ids)))
            .values(is_notified=True)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def soft_delete(self, item: TrackingItem) -> TrackingItem:
        item.deleted_at = datetime.now(timezone.utc)
        await self.db.flush()
        return item

    async def pending_branch_arrivals(self, branch_id: int) -> List[TrackingItem]:
        """Items at ARRIVED_BRANCH in the branch that nobody was told about yet."""
        result = await self.db.execute(
            self._active().where(
                TrackingItem.branch_id == branch_id,
                TrackingItem.current_status == TrackingStatus.ARRIVED_BRANCH,
                TrackingItem.is_notified == False,  # noqa: E712
            ).order_by(TrackingItem.created_by_user_id, TrackingItem.id)
        )
        return list(result.scalars().all())

    async def search(
        self,
        branch_id: Optional[int] = None,
        tracking_code: Optional[str] = None,
        status: Optional[TrackingStatus] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[TrackingItem], int]:
        conditions = [TrackingItem.deleted_at.is_(None)]
        if branch_id is not None:
            conditions.append(TrackingItem.branch_id == branch_id)
        if tracking_code:
            conditions.append(TrackingItem.tracking_code.ilike(f"%{tracking_code}%"))
        if status is not None:
            conditions.append(TrackingItem.current_status == status)

        total = (await self.db.execute(
            select(func.count(TrackingItem.id)).where(*conditions)
        )).scalar()

        result = await self.db.execute(
            select(TrackingItem).where(*conditions)
            .order_by(TrackingItem.created_at.desc(), TrackingItem.id.desc())
            .offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_owned(
        self, user_id: int, archived: bool = False, offset: int = 0, limit: int = 20
    ) -> Tuple[List[TrackingItem], int]:
        deleted = TrackingItem.deleted_at.is_not(None) if archived else TrackingItem.deleted_at.is_(None)
        conditions = [TrackingItem.created_by_user_id == user_id, deleted]

        total = (await self.db.execute(
            select(func.count(TrackingItem.id)).where(*conditions)
        )).scalar()

        order_column = TrackingItem.deleted_at if archived else TrackingItem.created_at
        result = await self.db.execute(
            select(TrackingItem).where(*conditions)
            .order_by(order_column.desc(), TrackingItem.id.desc())
            .offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def count_by_status(self, branch_id: Optional[int] = None) -> List[Tuple[TrackingStatus, int]]:
        query = select(TrackingItem.current_status, func.count(TrackingItem.id)).where(
            TrackingItem.deleted_at.is_(None)
        )
        if branch_id is not None:
            query = query.where(TrackingItem.branch_id == branch_id)
        result = await self.db.execute(query.group_by(TrackingItem.current_status))
        return [(row[0], row[1]) for row in result.all()]
