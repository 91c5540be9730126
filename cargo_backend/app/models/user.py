"""
User database model.

Accounts are managed elsewhere; the tracking core reads users only to
address branch-arrival invoices and to resolve item ownership.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from cargo_backend.app.db.session import Base
from cargo_backend.app.models.enums import UserRole


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone_number = Column(String(20), unique=True, nullable=True)
    user_code = Column(String(50), unique=True, nullable=True)
    telegram_username = Column(String(100), nullable=True)

    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, code='{self.user_code}', role='{self.role.value}', branch_id={self.branch_id})>"
