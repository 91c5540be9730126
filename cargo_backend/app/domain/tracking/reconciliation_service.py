"""
Reconciliation Engine (Domain Logic).

Merges externally-sourced milestone data (spreadsheet imports, manual
master updates) into the master manifest and the per-user tracking items.

The manifest is always upserted; items are only advanced through gated,
audited transitions. Bulk imports are partial-failure tolerant: every code
is its own committed unit, and a failing code is rolled back alone.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, Union
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_backend.app.core.exceptions import (
    ConcurrentStatusChangeError,
    InsufficientPermissionsError,
    InvalidRequestError,
)
from cargo_backend.app.core.guards import require_staff, require_superadmin
from cargo_backend.app.models.enums import StatusSource
from cargo_backend.app.models.import_log import ImportLog
from cargo_backend.app.models.manifest_entry import ManifestEntry
from cargo_backend.app.models.tracking_enums import (
    BRANCH_SETTABLE_STATUSES,
    MILESTONE_FIELDS,
    TrackingStatus,
    can_set_status,
    is_forward,
    milestone_field,
)
from cargo_backend.app.repositories.import_logs import ImportLogRepository
from cargo_backend.app.repositories.manifest import ManifestRepository
from cargo_backend.app.repositories.tracking_items import TrackingItemRepository
from cargo_backend.app.schemas.actor import Actor
from cargo_backend.app.schemas.manifest import CodeReason, ImportResult, MasterStatusResult, SyncResult
from cargo_backend.app.services.spreadsheet import read_rows
from cargo_backend.app.services.status_history import append_status_change

logger = logging.getLogger("cargo.import")

# Header cells people leave in the first row of an upload
HEADER_SENTINELS = frozenset({"trackingcode", "tracking code", "номер", "трек"})

INTERNAL_ERROR = "INTERNAL_ERROR"
CONCURRENT_UPDATE = "CONCURRENT_UPDATE"
ALREADY_AT_STATUS = "ALREADY_AT_STATUS_{status}"


def normalize_codes(rows: Iterable[Union[str, List[str]]]) -> List[str]:
    """
    Candidate tracking codes from raw rows, in first-seen order.

    Only column zero of each row is considered. Cells are trimmed, empty
    cells and header sentinels (case-insensitive) are dropped, and repeats
    (case-sensitive exact match) keep their first occurrence.
    """
    codes = []
    seen = set()
    for row in rows:
        if isinstance(row, (list, tuple)):
            cell = row[0] if row else None
        else:
            cell = row
        if cell is None:
            continue

        code = str(cell).strip()
        if not code or code.lower() in HEADER_SENTINELS:
            continue
        if code in seen:
            continue
        seen.add(code)
        codes.append(code)
    return codes


def _reject_cancelled(target_status: TrackingStatus):
    if target_status == TrackingStatus.CANCELLED:
        raise InvalidRequestError(
            "Cancellation is not a manifest milestone",
            details={"target_status": target_status.value}
        )


class ReconciliationEngine:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.items = TrackingItemRepository(db)
        self.manifest = ManifestRepository(db)
        self.import_logs = ImportLogRepository(db)

    async def import_codes(
        self,
        rows: Iterable[Union[str, List[str]]],
        target_status: TrackingStatus,
        actor: Actor,
        file_name: str = "manual"
    ) -> ImportResult:
        """
        Bulk import of arrival data for ``target_status``.

        Flow per unique code (one commit each):
        1. Upsert the manifest milestone for ``target_status`` to now
        2. No active item: success (only the manifest changed)
        3. Item at or beyond the target (or cancelled): skipped, no history
        4. Otherwise advance the item, copy the milestone, append EXCEL_IMPORT history

        Any failure is rolled back for that code only and reported as an error.
        One ImportLog is persisted for the whole run.
        """
        require_superadmin(actor)
        target_status = TrackingStatus(target_status)
        _reject_cancelled(target_status)

        codes = normalize_codes(rows)
        success: List[str] = []
        errors: List[CodeReason] = []
        skipped: List[CodeReason] = []

        for code in codes:
            try:
                skip_reason = await self._import_one(code, target_status, actor)
                await self.db.commit()
            except ConcurrentStatusChangeError:
                await self.db.rollback()
                logger.warning("Import of %s lost a concurrent status update", code)
                errors.append(CodeReason(code=code, reason=CONCURRENT_UPDATE))
                continue
            except Exception:
                await self.db.rollback()
                logger.exception("Import of %s failed", code)
                errors.append(CodeReason(code=code, reason=INTERNAL_ERROR))
                continue

            if skip_reason:
                skipped.append(CodeReason(code=code, reason=skip_reason))
            else:
                success.append(code)

        log = ImportLog(
            file_name=file_name,
            uploaded_by_user_id=actor.id,
            target_status=target_status,
            total_rows=len(codes),
            success_count=len(success),
            error_count=len(errors),
            skipped_count=len(skipped),
            error_details={
                "errors": [e.model_dump() for e in errors],
                "skipped": [s.model_dump() for s in skipped],
            }
        )
        await self.import_logs.add(log)
        await self.db.commit()
        await self.db.refresh(log)

        logger.info(
            "Import '%s' to %s by user %s: %d codes, %d ok, %d errors, %d skipped",
            file_name, target_status.value, actor.id,
            len(codes), len(success), len(errors), len(skipped)
        )

        return ImportResult(
            import_log_id=log.id,
            total_rows=len(codes),
            success_count=len(success),
            error_count=len(errors),
            skipped_count=len(skipped),
            success=success,
            errors=errors,
            skipped=skipped
        )

    async def _import_one(self, code: str, target_status: TrackingStatus, actor: Actor) -> Optional[str]:
        """Process one code inside the open transaction. Returns a skip reason or None."""
        now = datetime.now(timezone.utc)
        entry = await self.manifest.upsert_milestone(code, target_status, now)

        item = await self.items.find_active_by_code(code)
        if item is None:
            return None

        previous_status = item.current_status
        if not is_forward(previous_status, target_status):
            return ALREADY_AT_STATUS.format(status=previous_status.value)

        values = self._milestone_from_entry(entry, target_status)
        if not await self.items.compare_and_set_status(item, previous_status, target_status, **values):
            raise ConcurrentStatusChangeError(previous_status, target_status)

        await append_status_change(
            self.db,
            tracking_item_id=item.id,
            previous_status=previous_status,
            new_status=target_status,
            changed_by_user_id=actor.id,
            source=StatusSource.EXCEL_IMPORT
        )
        return None

    async def import_spreadsheet(
        self,
        content: bytes,
        file_name: str,
        target_status: TrackingStatus,
        actor: Actor
    ) -> ImportResult:
        require_superadmin(actor)
        _reject_cancelled(TrackingStatus(target_status))
        rows = read_rows(content, file_name)
        return await self.import_codes(rows, target_status, actor, file_name=file_name)

    async def update_master_status(
        self,
        tracking_code: str,
        target_status: TrackingStatus,
        actor: Actor
    ) -> MasterStatusResult:
        """
        Set one code's manifest milestone and sync every active item carrying it.

        This is the controlled sync path: matching items take the target
        status even when it is behind their current one. Cancelled items are
        left alone. Items already at the target only take the new milestone
        date. Each synced item gets a MANUAL history record; the whole call is
        a single transaction.
        """
        require_staff(actor)
        target_status = TrackingStatus(target_status)
        _reject_cancelled(target_status)

        if not can_set_status(actor.role, target_status):
            raise InsufficientPermissionsError(
                f"Admin can only set status to: {', '.join(sorted(s.value for s in BRANCH_SETTABLE_STATUSES))}",
                details={"target_status": target_status.value}
            )

        tracking_code = tracking_code.strip()
        if not tracking_code:
            raise InvalidRequestError("Tracking code is required")

        entry = await self.manifest.upsert_milestone(tracking_code, target_status, datetime.now(timezone.utc))
        values = self._milestone_from_entry(entry, target_status)

        synced = 0
        for item in await self.items.find_all_by_code(tracking_code):
            previous_status = item.current_status
            if previous_status == TrackingStatus.CANCELLED:
                continue
            if previous_status == target_status:
                # Milestone date follows the manifest, status and history stay
                for field, value in values.items():
                    setattr(item, field, value)
                continue

            if not await self.items.compare_and_set_status(item, previous_status, target_status, **values):
                await self.db.rollback()
                raise ConcurrentStatusChangeError(previous_status, target_status)

            await append_status_change(
                self.db,
                tracking_item_id=item.id,
                previous_status=previous_status,
                new_status=target_status,
                changed_by_user_id=actor.id,
                source=StatusSource.MANUAL
            )
            synced += 1

        await self.db.commit()
        logger.info(
            "Master status of %s set to %s by user %s, %d item(s) synced",
            tracking_code, target_status.value, actor.id, synced
        )
        return MasterStatusResult(tracking_code=tracking_code, items_synced=synced)

    async def sync_all_with_master(self, actor: Optional[Actor] = None) -> SyncResult:
        """
        Copy manifest milestone dates into items that are missing them.

        Never overwrites a date already on an item, never changes status and
        never writes history. Entries are committed one at a time.
        """
        if actor is not None:
            require_superadmin(actor)

        # Plain values survive the per-entry rollbacks below
        entries = [self._entry_dates(entry) for entry in await self.manifest.all_entries()]

        items_updated = 0
        entries_failed = 0
        for code, dates in entries:
            try:
                touched = await self._sync_one(code, dates)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                logger.exception("Sync of manifest entry %s failed", code)
                entries_failed += 1
                continue
            items_updated += touched

        logger.info(
            "Manifest sync: %d entries scanned, %d items updated, %d entries failed",
            len(entries), items_updated, entries_failed
        )
        return SyncResult(
            items_updated=items_updated,
            entries_scanned=len(entries),
            entries_failed=entries_failed
        )

    async def _sync_one(self, code: str, dates: dict) -> int:
        touched = 0
        for item in await self.items.find_all_by_code(code):
            changed = False
            for field, value in dates.items():
                if value is not None and getattr(item, field) is None:
                    setattr(item, field, value)
                    changed = True
            if changed:
                touched += 1
        await self.db.flush()
        return touched

    # Reads

    async def list_import_logs(self, actor: Actor, page: int = 1, page_size: int = 20) -> Tuple[List[ImportLog], int]:
        require_superadmin(actor)
        return await self.import_logs.list_logs(offset=(page - 1) * page_size, limit=page_size)

    async def list_manifest(self, actor: Actor, page: int = 1, page_size: int = 20) -> Tuple[List[ManifestEntry], int]:
        require_staff(actor)
        return await self.manifest.list_entries(offset=(page - 1) * page_size, limit=page_size)

    async def search_manifest(self, tracking_code: str, actor: Actor) -> List[ManifestEntry]:
        require_staff(actor)
        return await self.manifest.search(tracking_code.strip())

    @staticmethod
    def _milestone_from_entry(entry: ManifestEntry, status: TrackingStatus) -> dict:
        field = milestone_field(status)
        if field is None:
            return {}
        return {field: getattr(entry, field)}

    @staticmethod
    def _entry_dates(entry: ManifestEntry) -> Tuple[str, dict]:
        return entry.tracking_code, {
            field: getattr(entry, field) for field in MILESTONE_FIELDS.values()
        }
