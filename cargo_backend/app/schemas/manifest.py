"""
Master manifest, import and reconciliation schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from cargo_backend.app.models.tracking_enums import TrackingStatus


class CodeReason(BaseModel):
    code: str
    reason: str


class ImportResult(BaseModel):
    """Per-code breakdown of one bulk import."""
    import_log_id: int
    total_rows: int
    success_count: int
    error_count: int
    skipped_count: int
    success: List[str]
    errors: List[CodeReason]
    skipped: List[CodeReason]


class ImportLogResponse(BaseModel):
    id: int
    file_name: str
    uploaded_by_user_id: int
    target_status: TrackingStatus
    total_rows: int
    success_count: int
    error_count: int
    skipped_count: int
    error_details: Optional[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class ImportLogListResponse(BaseModel):
    logs: List[ImportLogResponse]
    total: int
    page: int
    page_size: int


class ManifestEntryResponse(BaseModel):
    id: int
    tracking_code: str
    origin_arrival_date: Optional[datetime]
    branch_arrival_date: Optional[datetime]
    delivery_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ManifestListResponse(BaseModel):
    entries: List[ManifestEntryResponse]
    total: int
    page: int
    page_size: int


class MasterStatusUpdate(BaseModel):
    tracking_code: str = Field(..., min_length=1, max_length=100)
    status: TrackingStatus


class MasterStatusResult(BaseModel):
    tracking_code: str
    items_synced: int


class SyncResult(BaseModel):
    items_updated: int
    entries_scanned: int
    entries_failed: int
