"""
Master Manifest API Endpoints.

Bulk arrival imports, manual master-status updates and the reconciliation
sweep. Mounted under the tracking prefix next to the item endpoints.
"""

from typing import List
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_backend.app.core.dependencies import get_current_actor
from cargo_backend.app.db.session import get_db
from cargo_backend.app.domain.tracking.reconciliation_service import ReconciliationEngine
from cargo_backend.app.models.tracking_enums import TrackingStatus
from cargo_backend.app.schemas.actor import Actor
from cargo_backend.app.schemas.manifest import (
    ImportLogListResponse,
    ImportLogResponse,
    ImportResult,
    ManifestEntryResponse,
    ManifestListResponse,
    MasterStatusResult,
    MasterStatusUpdate,
    SyncResult,
)

router = APIRouter(prefix="/tracking", tags=["Tracking - Master Manifest"])


@router.get("/import/logs", response_model=ImportLogListResponse)
async def list_import_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    logs, total = await ReconciliationEngine(db).list_import_logs(actor, page=page, page_size=page_size)
    return ImportLogListResponse(
        logs=[ImportLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/import", response_model=ImportResult)
async def import_spreadsheet(
    file: UploadFile = File(..., description="Excel workbook, tracking codes in the first column"),
    target_status: TrackingStatus = Form(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Import arrival data from a spreadsheet (SUPERADMIN only).

    Each code is processed independently; failures are reported per code
    and never abort the batch.
    """
    content = await file.read()
    return await ReconciliationEngine(db).import_spreadsheet(
        content, file.filename or "upload.xlsx", target_status, actor
    )


@router.post("/sync", response_model=SyncResult)
async def sync_with_master(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Fill missing milestone dates on items from the manifest. Status is never changed."""
    return await ReconciliationEngine(db).sync_all_with_master(actor)


@router.get("/master/list", response_model=ManifestListResponse)
async def list_manifest(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    entries, total = await ReconciliationEngine(db).list_manifest(actor, page=page, page_size=page_size)
    return ManifestListResponse(
        entries=[ManifestEntryResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/master/search", response_model=List[ManifestEntryResponse])
async def search_manifest(
    tracking_code: str = Query(..., min_length=1),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await ReconciliationEngine(db).search_manifest(tracking_code, actor)


@router.post("/master/status", response_model=MasterStatusResult)
async def update_master_status(
    payload: MasterStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await ReconciliationEngine(db).update_master_status(payload.tracking_code, payload.status, actor)
