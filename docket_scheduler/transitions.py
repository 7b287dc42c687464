"""
Booking state machine.

    Pending -> Confirmed -> In Progress -> Completed
    Pending | Confirmed -> Cancelled
    Confirmed -> No Show
    Confirmed -> Rescheduled   (a replacement booking is created)

Every function here is pure: it returns a new Booking and leaves storing
it to the orchestrator. Nothing ever moves back to Pending.
"""

from datetime import datetime
from typing import Dict, FrozenSet

from docket_models import Booking, BookingStatus, StatusChange
from .errors import InvalidTransitionError

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.IN_PROGRESS,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
        BookingStatus.RESCHEDULED,
    }),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
    BookingStatus.RESCHEDULED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition(
    booking: Booking,
    target: BookingStatus,
    actor: str,
    at: datetime,
    reason: str = "",
    **updates
) -> Booking:
    """Move a booking to `target`, recording one history entry."""
    if not can_transition(booking.status, target):
        raise InvalidTransitionError(
            f"Booking {booking.id} cannot go from {booking.status.value} to {target.value}",
            details={"booking_id": booking.id, "from": booking.status.value, "to": target.value}
        )
    change = StatusChange(
        from_status=booking.status,
        to_status=target,
        changed_by=actor,
        changed_at=at,
        reason=reason
    )
    return booking.model_copy(update={
        "status": target,
        "status_history": [*booking.status_history, change],
        **updates
    })


def cancel(booking: Booking, cancelled_by: str, reason: str, at: datetime) -> Booking:
    """Cancel; an already-cancelled booking comes back unchanged."""
    if booking.status == BookingStatus.CANCELLED:
        return booking
    return transition(
        booking, BookingStatus.CANCELLED, cancelled_by, at, reason,
        cancelled_by=cancelled_by, cancelled_at=at, cancellation_reason=reason
    )


def approve(booking: Booking, approved_by: str, at: datetime) -> Booking:
    return transition(
        booking, BookingStatus.CONFIRMED, approved_by, at, "Approved",
        approved_by=approved_by, approved_at=at
    )


def start(booking: Booking, actor: str, at: datetime) -> Booking:
    return transition(booking, BookingStatus.IN_PROGRESS, actor, at)


def complete(booking: Booking, actor: str, at: datetime) -> Booking:
    return transition(booking, BookingStatus.COMPLETED, actor, at)


def mark_no_show(booking: Booking, actor: str, at: datetime) -> Booking:
    return transition(booking, BookingStatus.NO_SHOW, actor, at)


def mark_rescheduled(booking: Booking, replacement_id: str, actor: str, at: datetime, reason: str = "") -> Booking:
    note = f"Rescheduled to {replacement_id}" + (f". Reason: {reason}" if reason else "")
    return transition(
        booking, BookingStatus.RESCHEDULED, actor, at, note,
        rescheduled_to=replacement_id
    )
