"""
Key/value settings table (PRICE_PER_KG, DOLLAR_RATE, ...).
"""

from sqlalchemy import Column, String
from cargo_backend.app.db.session import Base


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String(50), primary_key=True)
    value = Column(String(255), nullable=False)
    description = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<Setting(key='{self.key}', value='{self.value}')>"
