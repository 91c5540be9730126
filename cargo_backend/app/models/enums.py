"""
User roles and status-source enumerations.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        USER: End customer who registers parcels by tracking code
        ADMIN: Branch operator, scoped to a single branch
        SUPERADMIN: Global operator (imports, master list, any status)
    """
    USER = "USER"
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"


STAFF_ROLES = (UserRole.ADMIN, UserRole.SUPERADMIN)


class StatusSource(str, enum.Enum):
    """Where a recorded status transition came from."""
    MANUAL = "MANUAL"
    EXCEL_IMPORT = "EXCEL_IMPORT"
