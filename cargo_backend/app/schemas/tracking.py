"""
Tracking item Pydantic schemas.

Defines request and response models for the tracking ledger endpoints.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from cargo_backend.app.models.enums import StatusSource
from cargo_backend.app.models.tracking_enums import TrackingStatus


class TrackingCreate(BaseModel):
    """Schema for registering a parcel. Branch is taken from the caller."""
    tracking_code: str = Field(..., min_length=1, max_length=100, description="Unique tracking code")
    description: str = Field(..., min_length=1, description="What is inside the parcel")
    declared_value: Optional[float] = Field(None, ge=0, description="Declared value in USD")


class TrackingDetailsUpdate(BaseModel):
    """Owner edits: description, declared value, or an explicit rename of the code."""
    tracking_code: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1)
    declared_value: Optional[float] = Field(None, ge=0)


class StatusUpdate(BaseModel):
    status: TrackingStatus
    weight: Optional[float] = Field(None, ge=0)
    note: Optional[str] = None


class QuickUpdate(BaseModel):
    """Barcode-scan update; status defaults to ARRIVED_BRANCH."""
    tracking_code: str = Field(..., min_length=1, max_length=100)
    status: Optional[TrackingStatus] = None
    weight: Optional[float] = Field(None, ge=0)


class CancelRequest(BaseModel):
    note: Optional[str] = None


class StatusHistoryResponse(BaseModel):
    id: int
    tracking_item_id: int
    previous_status: Optional[TrackingStatus]
    new_status: TrackingStatus
    changed_by_user_id: int
    source: StatusSource
    note: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class TrackingResponse(BaseModel):
    id: int
    tracking_code: str
    description: str
    branch_id: Optional[int]
    created_by_user_id: int
    current_status: TrackingStatus
    weight: Optional[float]
    declared_value: Optional[float]
    origin_arrival_date: Optional[datetime]
    branch_arrival_date: Optional[datetime]
    delivery_date: Optional[datetime]
    is_notified: bool
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TrackingDetailResponse(TrackingResponse):
    history: List[StatusHistoryResponse] = []


class TrackingListResponse(BaseModel):
    items: List[TrackingResponse]
    total: int
    page: int
    page_size: int


class StatusCount(BaseModel):
    status: TrackingStatus
    count: int
