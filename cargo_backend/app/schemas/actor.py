"""
Caller identity passed into every mutating tracking operation.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict
from cargo_backend.app.models.enums import UserRole


class Actor(BaseModel):
    """Pre-validated caller: who is acting, with which role, from which branch."""
    model_config = ConfigDict(frozen=True)

    id: int
    role: UserRole
    branch_id: Optional[int] = None
