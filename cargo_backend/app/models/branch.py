"""
Branch database model.

A branch is a regional pickup location. Branch operators are scoped to one
branch, and arrival invoices are posted to the branch's Telegram topic.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from cargo_backend.app.db.session import Base


class Branch(Base):
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Topic inside the shared Telegram chat (None posts to the main thread)
    telegram_thread_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Branch(id={self.id}, name='{self.name}', active={self.is_active})>"
