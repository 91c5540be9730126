"""
Tracking item database model.

One row per parcel registered by an end user. The tracking code is unique
among non-deleted rows only, so a code can be registered again after its
previous holder soft-deleted it.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum, Boolean, Index
from sqlalchemy.sql import func
from cargo_backend.app.db.session import Base
from cargo_backend.app.models.tracking_enums import TrackingStatus


class TrackingItem(Base):
    """
    Parcel record owned by its creator.

    current_status only moves forward, except through the reconciliation
    engine's controlled master-status sync and explicit cancellation.
    """
    __tablename__ = "tracking_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    tracking_code = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=False)

    # Ownership - branch comes from the creator's profile, not the request
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=True, index=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    current_status = Column(Enum(TrackingStatus), default=TrackingStatus.REGISTERED, nullable=False, index=True)
    weight = Column(Numeric(10, 2), nullable=True)
    declared_value = Column(Numeric(12, 2), nullable=True)

    # Milestones
    origin_arrival_date = Column(DateTime(timezone=True), nullable=True)
    branch_arrival_date = Column(DateTime(timezone=True), nullable=True)
    delivery_date = Column(DateTime(timezone=True), nullable=True)

    is_notified = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def __repr__(self):
        return f"<TrackingItem(id={self.id}, code='{self.tracking_code}', status='{self.current_status.value}')>"


Index(
    "uq_tracking_items_active_code",
    TrackingItem.tracking_code,
    unique=True,
    postgresql_where=TrackingItem.deleted_at.is_(None),
    sqlite_where=TrackingItem.deleted_at.is_(None),
)
