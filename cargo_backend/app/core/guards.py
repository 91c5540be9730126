"""
Role and branch-scope checks used inside the tracking operations.

Authorization is enforced by the core operations themselves rather than
by endpoint dependencies, so every check here takes an explicit Actor.
"""

from typing import Iterable, Optional
from cargo_backend.app.core.exceptions import InsufficientPermissionsError
from cargo_backend.app.models.enums import STAFF_ROLES, UserRole
from cargo_backend.app.schemas.actor import Actor


def require_roles(actor: Actor, allowed_roles: Iterable[UserRole]) -> Actor:
    """
    Ensure the actor holds one of ``allowed_roles``.

    Raises:
        InsufficientPermissionsError if the actor's role is not allowed
    """
    allowed_roles = list(allowed_roles)
    if actor.role not in allowed_roles:
        raise InsufficientPermissionsError(
            f"Access denied. Required role: {', '.join(r.value for r in allowed_roles)}",
            details={"role": actor.role.value}
        )
    return actor


def require_staff(actor: Actor) -> Actor:
    return require_roles(actor, STAFF_ROLES)


def require_superadmin(actor: Actor) -> Actor:
    return require_roles(actor, [UserRole.SUPERADMIN])


def branch_scope(actor: Actor) -> Optional[int]:
    """
    Branch id to restrict item queries to.

    SUPERADMIN: None (no filtering)
    ADMIN: the actor's own branch
    USER: not a branch-scoped role

    An ADMIN without a branch sees nothing rather than everything.
    """
    if actor.role == UserRole.SUPERADMIN:
        return None

    if actor.role == UserRole.ADMIN:
        if actor.branch_id is None:
            raise InsufficientPermissionsError("Admin is not assigned to any branch")
        return actor.branch_id

    raise InsufficientPermissionsError("Branch staff access required")
