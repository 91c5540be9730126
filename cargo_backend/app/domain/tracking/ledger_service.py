"""
Tracking Item Ledger (Domain Logic).

Per-parcel workflow: registration (seeded from the master manifest),
strict manual status updates, tolerant barcode-scan updates, cancellation,
owner edits and soft deletion. Every accepted status change is written to
the status history in the same transaction as the change itself.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from cargo_backend.app.core.exceptions import (
    ConflictError,
    ConcurrentStatusChangeError,
    InsufficientPermissionsError,
    InvalidRequestError,
    InvalidTransitionError,
    ResourceNotFoundError,
)
from cargo_backend.app.core.guards import branch_scope, require_staff, require_superadmin
from cargo_backend.app.models.enums import StatusSource
from cargo_backend.app.models.status_history import StatusHistory
from cargo_backend.app.models.tracking_enums import (
    BRANCH_SETTABLE_STATUSES,
    MILESTONE_FIELDS,
    TrackingStatus,
    can_set_status,
    is_forward,
    milestone_field,
    status_from_milestones,
)
from cargo_backend.app.models.tracking_item import TrackingItem
from cargo_backend.app.repositories.manifest import ManifestRepository
from cargo_backend.app.repositories.tracking_items import TrackingItemRepository
from cargo_backend.app.schemas.actor import Actor
from cargo_backend.app.services.status_history import (
    QUICK_UPDATE_NOTE,
    append_status_change,
    get_item_history,
)

logger = logging.getLogger("cargo.ledger")

RESOURCE = "Tracking item"


def _clean_code(tracking_code: str) -> str:
    tracking_code = (tracking_code or "").strip()
    if not tracking_code:
        raise InvalidRequestError("Tracking code is required")
    return tracking_code


def _as_decimal(value) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _milestone_values(item: TrackingItem, target: TrackingStatus, timestamp: datetime) -> dict:
    """Milestone date to stamp when ``item`` reaches ``target``, if not set yet."""
    field = milestone_field(target)
    if field is None or getattr(item, field) is not None:
        return {}
    return {field: timestamp}


class TrackingLedger:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.items = TrackingItemRepository(db)
        self.manifest = ManifestRepository(db)

    async def register(
        self,
        tracking_code: str,
        description: str,
        actor: Actor,
        declared_value: Optional[float] = None
    ) -> TrackingItem:
        """
        Register a parcel for the acting user.

        Flow:
        1. Reject codes held by an active item (Conflict)
        2. Seed milestone dates and initial status from the master manifest
        3. Persist the item in the creator's branch
        4. Record the initial history entry (previous_status = None)
        """
        tracking_code = _clean_code(tracking_code)

        if await self.items.find_active_by_code(tracking_code):
            raise ConflictError(
                f"Tracking code '{tracking_code}' already exists",
                details={"tracking_code": tracking_code}
            )

        master = await self.manifest.lookup(tracking_code)
        dates = {
            field: getattr(master, field) if master else None
            for field in MILESTONE_FIELDS.values()
        }
        initial_status = status_from_milestones(
            dates["origin_arrival_date"], dates["branch_arrival_date"], dates["delivery_date"]
        )

        item = TrackingItem(
            tracking_code=tracking_code,
            description=description,
            declared_value=_as_decimal(declared_value),
            branch_id=actor.branch_id,
            created_by_user_id=actor.id,
            current_status=initial_status,
            is_notified=False,
            **dates
        )

        try:
            await self.items.add(item)
            await append_status_change(
                self.db,
                tracking_item_id=item.id,
                previous_status=None,
                new_status=initial_status,
                changed_by_user_id=actor.id,
                source=StatusSource.MANUAL
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            # Lost a race against another registration of the same code
            if await self.items.find_active_by_code(tracking_code):
                raise ConflictError(
                    f"Tracking code '{tracking_code}' already exists",
                    details={"tracking_code": tracking_code}
                )
            raise

        await self.db.refresh(item)
        logger.info(
            "Registered %s for user %s with status %s",
            tracking_code, actor.id, initial_status.value
        )
        return item

    async def update_status(
        self,
        item_id: int,
        target_status: TrackingStatus,
        actor: Actor,
        weight: Optional[float] = None,
        note: Optional[str] = None
    ) -> TrackingItem:
        """
        Strict manual status change by branch staff.

        Raises:
            ResourceNotFoundError: item missing or outside the actor's branch
            InsufficientPermissionsError: role may not set ``target_status``
            InvalidTransitionError: target is not strictly after the current status
        """
        require_staff(actor)
        target_status = TrackingStatus(target_status)

        item = await self.items.get_scoped(item_id, branch_scope(actor))
        if not item:
            raise ResourceNotFoundError(RESOURCE, item_id)

        if not can_set_status(actor.role, target_status):
            raise InsufficientPermissionsError(
                f"Admin can only set status to: {', '.join(sorted(s.value for s in BRANCH_SETTABLE_STATUSES))}",
                details={"target_status": target_status.value}
            )

        previous_status = item.current_status
        if not is_forward(previous_status, target_status):
            raise InvalidTransitionError(previous_status, target_status)

        values = _milestone_values(item, target_status, datetime.now(timezone.utc))
        if weight is not None:
            values["weight"] = _as_decimal(weight)

        await self._apply_transition(item, previous_status, target_status, values)
        await append_status_change(
            self.db,
            tracking_item_id=item.id,
            previous_status=previous_status,
            new_status=target_status,
            changed_by_user_id=actor.id,
            source=StatusSource.MANUAL,
            note=note
        )
        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def quick_update_by_code(
        self,
        tracking_code: str,
        actor: Actor,
        target_status: Optional[TrackingStatus] = None,
        weight: Optional[float] = None
    ) -> TrackingItem:
        """
        Barcode-scan update.

        A target that is not forward leaves the status alone instead of
        failing; weight and branch adoption are applied either way.
        """
        require_staff(actor)
        tracking_code = _clean_code(tracking_code)

        item = await self.items.find_active_by_code(tracking_code)
        if not item:
            raise ResourceNotFoundError(RESOURCE, tracking_code)

        target_status = TrackingStatus(target_status or TrackingStatus.ARRIVED_BRANCH)
        previous_status = item.current_status

        values = {}
        if weight is not None:
            values["weight"] = _as_decimal(weight)
        if item.branch_id is None and actor.branch_id is not None:
            values["branch_id"] = actor.branch_id

        if is_forward(previous_status, target_status):
            values.update(_milestone_values(item, target_status, datetime.now(timezone.utc)))
            await self._apply_transition(item, previous_status, target_status, values)
            await append_status_change(
                self.db,
                tracking_item_id=item.id,
                previous_status=previous_status,
                new_status=target_status,
                changed_by_user_id=actor.id,
                source=StatusSource.MANUAL,
                note=QUICK_UPDATE_NOTE
            )
        elif values:
            for field, value in values.items():
                setattr(item, field, value)
            await self.db.flush()

        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def cancel(self, item_id: int, actor: Actor, note: Optional[str] = None) -> TrackingItem:
        """Move an item to CANCELLED from any other status (SUPERADMIN only)."""
        require_superadmin(actor)

        item = await self.items.get_scoped(item_id)
        if not item:
            raise ResourceNotFoundError(RESOURCE, item_id)

        previous_status = item.current_status
        if previous_status == TrackingStatus.CANCELLED:
            raise InvalidTransitionError(
                previous_status, TrackingStatus.CANCELLED, "Tracking item is already cancelled"
            )

        await self._apply_transition(item, previous_status, TrackingStatus.CANCELLED, {})
        await append_status_change(
            self.db,
            tracking_item_id=item.id,
            previous_status=previous_status,
            new_status=TrackingStatus.CANCELLED,
            changed_by_user_id=actor.id,
            source=StatusSource.MANUAL,
            note=note
        )
        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def update_details(
        self,
        item_id: int,
        actor: Actor,
        tracking_code: Optional[str] = None,
        description: Optional[str] = None,
        declared_value: Optional[float] = None
    ) -> TrackingItem:
        """Owner edit of description, declared value and the authorized rename of the code."""
        item = await self.items.get_owned(item_id, actor.id)
        if not item:
            raise ResourceNotFoundError(RESOURCE, item_id)

        if tracking_code is not None:
            tracking_code = _clean_code(tracking_code)
            if tracking_code != item.tracking_code:
                holder = await self.items.find_active_by_code(tracking_code)
                if holder and holder.id != item.id:
                    raise ConflictError(
                        f"Tracking code '{tracking_code}' already exists",
                        details={"tracking_code": tracking_code}
                    )
                item.tracking_code = tracking_code

        if description is not None:
            item.description = description
        if declared_value is not None:
            item.declared_value = _as_decimal(declared_value)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(
                f"Tracking code '{tracking_code}' already exists",
                details={"tracking_code": tracking_code}
            )
        await self.db.refresh(item)
        return item

    async def soft_delete(self, item_id: int, actor: Actor) -> TrackingItem:
        """Archive the actor's own item. Other users' items are reported as missing."""
        item = await self.items.get_owned(item_id, actor.id)
        if not item:
            raise ResourceNotFoundError(RESOURCE, item_id)

        await self.items.soft_delete(item)
        await self.db.commit()
        await self.db.refresh(item)
        logger.info("Tracking item %s archived by user %s", item.tracking_code, actor.id)
        return item

    # Reads

    async def get(self, item_id: int, actor: Actor) -> Tuple[TrackingItem, List[StatusHistory]]:
        require_staff(actor)
        item = await self.items.get_scoped(item_id, branch_scope(actor))
        if not item:
            raise ResourceNotFoundError(RESOURCE, item_id)
        return item, await get_item_history(self.db, item.id)

    async def history(self, item_id: int, actor: Actor) -> List[StatusHistory]:
        _, records = await self.get(item_id, actor)
        return records

    async def list_items(
        self,
        actor: Actor,
        tracking_code: Optional[str] = None,
        status: Optional[TrackingStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[TrackingItem], int]:
        require_staff(actor)
        return await self.items.search(
            branch_id=branch_scope(actor),
            tracking_code=tracking_code,
            status=status,
            offset=(page - 1) * page_size,
            limit=page_size
        )

    async def search_by_code(self, tracking_code: str) -> TrackingItem:
        item = await self.items.find_active_by_code(_clean_code(tracking_code))
        if not item:
            raise ResourceNotFoundError(RESOURCE, tracking_code)
        return item

    async def dashboard(self, actor: Actor) -> List[Tuple[TrackingStatus, int]]:
        require_staff(actor)
        return await self.items.count_by_status(branch_scope(actor))

    async def list_owned(
        self, actor: Actor, archived: bool = False, page: int = 1, page_size: int = 20
    ) -> Tuple[List[TrackingItem], int]:
        return await self.items.list_owned(
            actor.id, archived=archived, offset=(page - 1) * page_size, limit=page_size
        )

    async def _apply_transition(
        self,
        item: TrackingItem,
        previous_status: TrackingStatus,
        target_status: TrackingStatus,
        values: dict
    ):
        """
        Conditional status write. On a lost race the session is rolled back,
        which expires ``item``; callers must not read it afterwards.
        """
        applied = await self.items.compare_and_set_status(item, previous_status, target_status, **values)
        if not applied:
            await self.db.rollback()
            raise ConcurrentStatusChangeError(previous_status, target_status)
