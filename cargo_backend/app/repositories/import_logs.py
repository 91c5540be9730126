"""
Import log repository. Logs are written once and only read afterwards.
"""

from typing import List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from cargo_backend.app.models.import_log import ImportLog


class ImportLogRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, log: ImportLog) -> ImportLog:
        self.db.add(log)
        await self.db.flush()
        return log

    async def list_logs(self, offset: int = 0, limit: int = 20) -> Tuple[List[ImportLog], int]:
        total = (await self.db.execute(select(func.count(ImportLog.id)))).scalar()
        result = await self.db.execute(
            select(ImportLog)
            .order_by(ImportLog.created_at.desc(), ImportLog.id.desc())
            .offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total
