"""
Tracking API Endpoints.

Parcel registration and lifecycle for customers and branch staff. Role and
branch checks happen inside the ledger; endpoints only translate HTTP into
ledger calls.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_backend.app.core.dependencies import get_current_actor
from cargo_backend.app.db.session import get_db
from cargo_backend.app.domain.tracking.ledger_service import TrackingLedger
from cargo_backend.app.models.tracking_enums import TrackingStatus
from cargo_backend.app.schemas.actor import Actor
from cargo_backend.app.schemas.tracking import (
    CancelRequest,
    QuickUpdate,
    StatusCount,
    StatusHistoryResponse,
    StatusUpdate,
    TrackingCreate,
    TrackingDetailResponse,
    TrackingDetailsUpdate,
    TrackingListResponse,
    TrackingResponse,
)

router = APIRouter(prefix="/tracking", tags=["Tracking"])


@router.post("/", response_model=TrackingResponse, status_code=status.HTTP_201_CREATED)
async def register_item(
    payload: TrackingCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a parcel for the caller.

    The initial status is derived from the master manifest, so a parcel
    whose arrival was imported earlier starts at that milestone.
    """
    return await TrackingLedger(db).register(
        payload.tracking_code, payload.description, actor, declared_value=payload.declared_value
    )


@router.get("/", response_model=TrackingListResponse)
async def list_items(
    tracking_code: Optional[str] = Query(None, description="Substring filter on the tracking code"),
    status_filter: Optional[TrackingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """List items visible to the caller's branch (all branches for SUPERADMIN)."""
    items, total = await TrackingLedger(db).list_items(
        actor, tracking_code=tracking_code, status=status_filter, page=page, page_size=page_size
    )
    return TrackingListResponse(
        items=[TrackingResponse.model_validate(i) for i in items],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/search", response_model=TrackingResponse)
async def search_by_code(
    tracking_code: str = Query(..., min_length=1),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await TrackingLedger(db).search_by_code(tracking_code)


@router.get("/dashboard", response_model=List[StatusCount])
async def dashboard(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    counts = await TrackingLedger(db).dashboard(actor)
    return [StatusCount(status=s, count=c) for s, c in counts]


@router.get("/my", response_model=TrackingListResponse)
async def list_my_items(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    items, total = await TrackingLedger(db).list_owned(actor, page=page, page_size=page_size)
    return TrackingListResponse(
        items=[TrackingResponse.model_validate(i) for i in items],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/my/archive", response_model=TrackingListResponse)
async def list_my_archive(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    items, total = await TrackingLedger(db).list_owned(actor, archived=True, page=page, page_size=page_size)
    return TrackingListResponse(
        items=[TrackingResponse.model_validate(i) for i in items],
        total=total,
        page=page,
        page_size=page_size
    )


@router.patch("/quick-update", response_model=TrackingResponse)
async def quick_update(
    payload: QuickUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Barcode scan at the branch counter. Never fails on a stale target status."""
    return await TrackingLedger(db).quick_update_by_code(
        payload.tracking_code, actor, target_status=payload.status, weight=payload.weight
    )


@router.get("/{item_id}", response_model=TrackingDetailResponse)
async def get_item(
    item_id: int = Path(..., description="Tracking item ID"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    item, history = await TrackingLedger(db).get(item_id, actor)
    return TrackingDetailResponse(
        **TrackingResponse.model_validate(item).model_dump(),
        history=[StatusHistoryResponse.model_validate(record) for record in history]
    )


@router.get("/{item_id}/history", response_model=List[StatusHistoryResponse])
async def get_item_history(
    item_id: int = Path(..., description="Tracking item ID"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await TrackingLedger(db).history(item_id, actor)


@router.patch("/{item_id}", response_model=TrackingResponse)
async def update_item_details(
    payload: TrackingDetailsUpdate,
    item_id: int = Path(..., description="Tracking item ID"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Owner edit. Renaming the tracking code goes through the same conflict check as registration."""
    return await TrackingLedger(db).update_details(
        item_id,
        actor,
        tracking_code=payload.tracking_code,
        description=payload.description,
        declared_value=payload.declared_value
    )


@router.patch("/{item_id}/status", response_model=TrackingResponse)
async def update_item_status(
    payload: StatusUpdate,
    item_id: int = Path(..., description="Tracking item ID"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await TrackingLedger(db).update_status(
        item_id, payload.status, actor, weight=payload.weight, note=payload.note
    )


@router.patch("/{item_id}/cancel", response_model=TrackingResponse)
async def cancel_item(
    payload: Optional[CancelRequest] = None,
    item_id: int = Path(..., description="Tracking item ID"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    note = payload.note if payload else None
    return await TrackingLedger(db).cancel(item_id, actor, note=note)


@router.delete("/{item_id}", response_model=TrackingResponse)
async def delete_item(
    item_id: int = Path(..., description="Tracking item ID"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Archive the caller's own item. The code becomes free for re-registration."""
    return await TrackingLedger(db).soft_delete(item_id, actor)
