"""Reservation lifecycle rules

The allowed-transition table is authoritative: a status is only as final as
the table makes it. Availability is derived from BLOCKING_STATUSES, so a
status change is also the capacity change.
"""
from datetime import datetime, timezone
from typing import Dict, FrozenSet

from domain.enums import ReservationStatus, DisplayStatus
from domain.exceptions import InvalidTransition
from domain.value_objects import TimeWindow


BLOCKING_STATUSES: FrozenSet[ReservationStatus] = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
})

ALLOWED_TRANSITIONS: Dict[ReservationStatus, FrozenSet[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({
        ReservationStatus.CONFIRMED,
        ReservationStatus.CANCELLED,
    }),
    ReservationStatus.CONFIRMED: frozenset({
        ReservationStatus.COMPLETED,
        ReservationStatus.NO_SHOW,
        ReservationStatus.DAMAGED,
        ReservationStatus.CANCELLED,
    }),
    ReservationStatus.NO_SHOW: frozenset({
        ReservationStatus.CONFIRMED,
        ReservationStatus.CANCELLED,
    }),
    ReservationStatus.DAMAGED: frozenset({
        ReservationStatus.COMPLETED,
    }),
    # late damage report
    ReservationStatus.COMPLETED: frozenset({
        ReservationStatus.DAMAGED,
    }),
    # reinstatement
    ReservationStatus.CANCELLED: frozenset({
        ReservationStatus.CONFIRMED,
    }),
}


def is_blocking(status: ReservationStatus) -> bool:
    """Whether a reservation in this status consumes a unit of inventory"""
    return status in BLOCKING_STATUSES


def can_transition(from_status: ReservationStatus, to_status: ReservationStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def ensure_transition(from_status: ReservationStatus, to_status: ReservationStatus) -> None:
    if not can_transition(from_status, to_status):
        raise InvalidTransition(from_status, to_status)


def to_display_status(
    status: ReservationStatus,
    window: TimeWindow,
    now: datetime = None
) -> DisplayStatus:
    """Map an engine status onto the simplified admin vocabulary.

    Statuses that still hold the unit are placed on the timeline: before the
    window RESERVED, from start through end inclusive IN_PROGRESS, after it
    COMPLETED.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if status == ReservationStatus.CANCELLED:
        return DisplayStatus.RESERVED
    if status == ReservationStatus.DAMAGED:
        return DisplayStatus.DAMAGED
    if status == ReservationStatus.NO_SHOW:
        return DisplayStatus.STOLEN
    if status == ReservationStatus.COMPLETED:
        return DisplayStatus.COMPLETED

    if now < window.start_at:
        return DisplayStatus.RESERVED
    # the return instant itself still shows the rental as running
    if now <= window.end_at:
        return DisplayStatus.IN_PROGRESS
    return DisplayStatus.COMPLETED


_DISPLAY_TO_ENGINE: Dict[DisplayStatus, ReservationStatus] = {
    DisplayStatus.RESERVED: ReservationStatus.CONFIRMED,
    DisplayStatus.IN_PROGRESS: ReservationStatus.CONFIRMED,
    DisplayStatus.COMPLETED: ReservationStatus.COMPLETED,
    DisplayStatus.DAMAGED: ReservationStatus.DAMAGED,
    DisplayStatus.STOLEN: ReservationStatus.NO_SHOW,
}


def display_to_engine_status(
    display: DisplayStatus,
    current: ReservationStatus
) -> ReservationStatus:
    """Target engine status for an admin action expressed as a display status"""
    if display == DisplayStatus.RESERVED and current == ReservationStatus.CANCELLED:
        return ReservationStatus.CANCELLED
    return _DISPLAY_TO_ENGINE[display]
