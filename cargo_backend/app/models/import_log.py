"""
Import log database model.

Summary of one bulk import run. Written once, never updated.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.sql import func
from cargo_backend.app.db.session import Base
from cargo_backend.app.models.tracking_enums import TrackingStatus


class ImportLog(Base):
    __tablename__ = "import_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    file_name = Column(String(255), nullable=False)
    uploaded_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    target_status = Column(Enum(TrackingStatus), nullable=False)

    total_rows = Column(Integer, nullable=False)
    success_count = Column(Integer, nullable=False)
    error_count = Column(Integer, nullable=False)
    skipped_count = Column(Integer, nullable=False)

    # {"errors": [{"code", "reason"}], "skipped": [{"code", "reason"}]}
    error_details = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return (
            f"<ImportLog(id={self.id}, file='{self.file_name}', ok={self.success_count}, "
            f"errors={self.error_count}, skipped={self.skipped_count})>"
        )
