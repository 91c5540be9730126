"""
Status history database model.

Append-only audit trail: one row per accepted status transition.
"""

from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from cargo_backend.app.db.session import Base
from cargo_backend.app.models.enums import StatusSource
from cargo_backend.app.models.tracking_enums import TrackingStatus


class StatusHistory(Base):
    __tablename__ = "status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    tracking_item_id = Column(Integer, ForeignKey("tracking_items.id"), nullable=False, index=True)

    # None for the initial registration record
    previous_status = Column(Enum(TrackingStatus), nullable=True)
    new_status = Column(Enum(TrackingStatus), nullable=False)

    changed_by_user_id = Column(Integer, nullable=False, index=True)
    source = Column(Enum(StatusSource), nullable=False)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        previous = self.previous_status.value if self.previous_status else None
        return f"<StatusHistory(item={self.tracking_item_id}, {previous} -> {self.new_status.value}, source='{self.source.value}')>"
