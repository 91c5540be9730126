"""
Branch notification schemas.
"""

from pydantic import BaseModel


class NotifyResult(BaseModel):
    users_notified: int = 0
    items_notified: int = 0
