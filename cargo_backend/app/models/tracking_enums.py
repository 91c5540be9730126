"""
Tracking status model.

Status flow:
    REGISTERED → ARRIVED_ORIGIN_WAREHOUSE → SENT_TO_DESTINATION_COUNTRY
    → ARRIVED_BRANCH → READY_FOR_PICKUP → PICKED_UP

CANCELLED sits outside the sequence. It is absorbing and is only reached
through an explicit cancellation, never through a forward comparison.
"""

import enum
from typing import Optional

from cargo_backend.app.models.enums import UserRole


class TrackingStatus(str, enum.Enum):
    REGISTERED = "REGISTERED"
    ARRIVED_ORIGIN_WAREHOUSE = "ARRIVED_ORIGIN_WAREHOUSE"
    SENT_TO_DESTINATION_COUNTRY = "SENT_TO_DESTINATION_COUNTRY"
    ARRIVED_BRANCH = "ARRIVED_BRANCH"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    PICKED_UP = "PICKED_UP"
    CANCELLED = "CANCELLED"


CANCELLED_ORDER = 99

STATUS_ORDER = {
    TrackingStatus.REGISTERED: 0,
    TrackingStatus.ARRIVED_ORIGIN_WAREHOUSE: 1,
    TrackingStatus.SENT_TO_DESTINATION_COUNTRY: 2,
    TrackingStatus.ARRIVED_BRANCH: 3,
    TrackingStatus.READY_FOR_PICKUP: 4,
    TrackingStatus.PICKED_UP: 5,
    TrackingStatus.CANCELLED: CANCELLED_ORDER,
}

# Lifecycle statuses in order (CANCELLED excluded)
ORDERED_STATUSES = sorted(
    (s for s in TrackingStatus if s is not TrackingStatus.CANCELLED),
    key=STATUS_ORDER.__getitem__,
)

# Statuses a branch ADMIN may set by hand
BRANCH_SETTABLE_STATUSES = frozenset({
    TrackingStatus.READY_FOR_PICKUP,
    TrackingStatus.PICKED_UP,
})

# Milestone date attribute recorded when a parcel reaches the status
MILESTONE_FIELDS = {
    TrackingStatus.ARRIVED_ORIGIN_WAREHOUSE: "origin_arrival_date",
    TrackingStatus.ARRIVED_BRANCH: "branch_arrival_date",
    TrackingStatus.PICKED_UP: "delivery_date",
}


def order(status: TrackingStatus) -> int:
    return STATUS_ORDER[TrackingStatus(status)]


def is_forward(current: TrackingStatus, target: TrackingStatus) -> bool:
    """
    True when moving from ``current`` to ``target`` advances the lifecycle.

    Any comparison involving CANCELLED is not forward.
    """
    current, target = TrackingStatus(current), TrackingStatus(target)
    if TrackingStatus.CANCELLED in (current, target):
        return False
    return STATUS_ORDER[target] > STATUS_ORDER[current]


def is_later_for_display(a: TrackingStatus, b: TrackingStatus) -> bool:
    """Plain ordinal comparison for sorting/display; CANCELLED sorts last."""
    return order(a) > order(b)


def can_set_status(role: UserRole, status: TrackingStatus) -> bool:
    """Whether ``role`` may set ``status`` on an item directly."""
    if role == UserRole.SUPERADMIN:
        return True
    if role == UserRole.ADMIN:
        return TrackingStatus(status) in BRANCH_SETTABLE_STATUSES
    return False


def milestone_field(status: TrackingStatus) -> Optional[str]:
    return MILESTONE_FIELDS.get(TrackingStatus(status))


def status_from_milestones(origin_arrival_date, branch_arrival_date, delivery_date) -> TrackingStatus:
    """Most advanced status implied by the recorded milestone dates."""
    if delivery_date is not None:
        return TrackingStatus.PICKED_UP
    if branch_arrival_date is not None:
        return TrackingStatus.ARRIVED_BRANCH
    if origin_arrival_date is not None:
        return TrackingStatus.ARRIVED_ORIGIN_WAREHOUSE
    return TrackingStatus.REGISTERED
