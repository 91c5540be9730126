"""
Master manifest database model.

Arrival milestones keyed only by tracking code, written by bulk imports and
master-status updates. Entries often exist before anyone has registered the
parcel, and carry no owner or branch.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from cargo_backend.app.db.session import Base


class ManifestEntry(Base):
    __tablename__ = "manifest_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_code = Column(String(100), unique=True, nullable=False, index=True)

    origin_arrival_date = Column(DateTime(timezone=True), nullable=True)
    branch_arrival_date = Column(DateTime(timezone=True), nullable=True)
    delivery_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<ManifestEntry(id={self.id}, code='{self.tracking_code}')>"
