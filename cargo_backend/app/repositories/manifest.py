"""
Master manifest repository.

Entries are created on demand by every writer; "not found" is the normal
case for a code nobody imported yet, never an error.
"""

from datetime import datetime
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from cargo_backend.app.models.manifest_entry import ManifestEntry
from cargo_backend.app.models.tracking_enums import TrackingStatus, milestone_field


class ManifestRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lookup(self, tracking_code: str) -> Optional[ManifestEntry]:
        result = await self.db.execute(
            select(ManifestEntry).where(ManifestEntry.tracking_code == tracking_code)
        )
        return result.scalar_one_or_none()

    async def upsert_milestone(
        self, tracking_code: str, status: TrackingStatus, timestamp: datetime
    ) -> ManifestEntry:
        """
        Create the entry if absent and overwrite the milestone for ``status``.

        Statuses without a milestone date only ensure the entry exists.
        """
        entry = await self.lookup(tracking_code)
        if entry is None:
            entry = ManifestEntry(tracking_code=tracking_code)
            self.db.add(entry)

        field = milestone_field(status)
        if field is not None:
            setattr(entry, field, timestamp)

        await self.db.flush()
        return entry

    async def all_entries(self) -> List[ManifestEntry]:
        result = await self.db.execute(select(ManifestEntry).order_by(ManifestEntry.id))
        return list(result.scalars().all())

    async def list_entries(self, offset: int = 0, limit: int = 20) -> Tuple[List[ManifestEntry], int]:
        total = (await self.db.execute(select(func.count(ManifestEntry.id)))).scalar()
        result = await self.db.execute(
            select(ManifestEntry)
            .order_by(ManifestEntry.created_at.desc(), ManifestEntry.id.desc())
            .offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def search(self, tracking_code: str) -> List[ManifestEntry]:
        result = await self.db.execute(
            select(ManifestEntry).where(ManifestEntry.tracking_code == tracking_code)
        )
        return list(result.scalars().all())
