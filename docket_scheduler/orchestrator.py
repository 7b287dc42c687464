"""
Booking Orchestrator.

The entry point the CRUD layer calls to reserve, cancel and reschedule.
Every reservation runs "check conflicts, then reserve" as one optimistic
unit: version tokens of all touched subjects/resources are read before
the check, and the write is conditioned on them. If another writer got
in between, the whole sequence is retried (bounded), so two concurrent
requests can never both pass the check for the same capacity.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from docket_models import (
    Booking,
    BookingEvent,
    BookingEventType,
    BookingStatus,
    StatusChange,
    TimeInterval,
    WorkingHours,
)
from . import transitions
from .config import SchedulerSettings
from .conflicts import ConflictDetector
from .errors import (
    ConcurrencyConflictError,
    ConflictError,
    InvalidTransitionError,
    ValidationError,
    validation_guard,
)
from .registry import AvailabilityRegistry
from .repository import (
    Record,
    SchedulingRepository,
    booking_scope,
    new_id,
    resource_scope,
    subject_scope,
)
from .scoring import SlotScorer
from .slots import SlotFinder

logger = logging.getLogger(__name__)


@dataclass
class ReservationPlan:
    """Everything one check-then-reserve attempt needs."""
    booking: Booking
    buffer_minutes: int = 0
    exclude_booking_id: Optional[str] = None
    extra_writes: List[Record] = field(default_factory=list)
    extra_expected: Dict[str, int] = field(default_factory=dict)
    events: List[BookingEvent] = field(default_factory=list)


class BookingOrchestrator:
    """
    Validates, reserves and transitions bookings.
    Holds no locks of its own; correctness comes from the versioned commit.
    """

    def __init__(
        self,
        repository: SchedulingRepository,
        registry: Optional[AvailabilityRegistry] = None,
        settings: Optional[SchedulerSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        scorer: Optional[SlotScorer] = None
    ):
        self.repository = repository
        self.registry = registry or AvailabilityRegistry(repository, settings, clock)
        self.settings = settings or self.registry.settings
        self.clock = clock or self.registry.clock

        self.detector = ConflictDetector(self.registry)
        self.slot_finder = SlotFinder(self.registry)
        self.scorer = scorer or SlotScorer()

    # --- Requests ---

    def request_booking(
        self,
        candidate: TimeInterval,
        subject_ids: Iterable[str],
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        owner: str = "system",
        purpose: str = "",
        buffer_minutes: int = 0,
        setup_minutes: int = 0,
        cleanup_minutes: int = 0,
        booking_id: Optional[str] = None
    ) -> Booking:
        """
        Reserve the candidate for all subjects (and the resource, if any).

        Returns the stored booking (Confirmed, or Pending when the resource
        requires approval). Raises ConflictError listing what is in the way.
        """
        subjects = self._validate_request(candidate, subject_ids, resource_id, buffer_minutes)
        now = self.clock()
        if booking_id and self._booking_id_taken(booking_id):
            raise _duplicate_booking(booking_id)
        status = BookingStatus.CONFIRMED

        if resource_id:
            resource = self.repository.get_resource(resource_id)
            self._validate_booking_rules(resource, candidate, now)
            if resource.booking_rules.requires_approval:
                status = BookingStatus.PENDING

        with validation_guard("Invalid booking"):
            booking = Booking(
                id=booking_id or new_id("bkg"),
                interval=candidate,
                subject_ids=subjects,
                resource_id=resource_id,
                owner=owner,
                status=status,
                purpose=purpose,
                metadata=dict(metadata or {}),
                setup_minutes=setup_minutes,
                cleanup_minutes=cleanup_minutes,
                created_at=now,
                status_history=[StatusChange(to_status=status, changed_by=owner, changed_at=now)]
            )

        plan = ReservationPlan(
            booking=booking,
            buffer_minutes=buffer_minutes,
            events=[self._event(booking, BookingEventType.CREATED, owner, now)]
        )
        stored = self._reserve(lambda: plan)
        logger.info(
            f"Booking {stored.id} {stored.status.value}: {stored.interval} "
            f"subjects={stored.subject_ids} resource={stored.resource_id}"
        )
        return stored

    def reschedule_booking(
        self,
        booking_id: str,
        new_interval: TimeInterval,
        changed_by: str,
        reason: str = ""
    ) -> Booking:
        """
        Move a Confirmed booking: the old one becomes Rescheduled and a
        replacement is reserved against the new interval through the same
        conflict and capacity checks. Both writes land together or not at all.
        Returns the replacement booking.
        """
        current = self.repository.get_booking(booking_id)
        if not transitions.can_transition(current.status, BookingStatus.RESCHEDULED):
            raise InvalidTransitionError(
                f"Booking {booking_id} cannot be rescheduled from {current.status.value}",
                details={"booking_id": booking_id, "status": current.status.value}
            )
        self._validate_request(new_interval, current.subject_ids, current.resource_id, 0)

        now = self.clock()
        status = BookingStatus.CONFIRMED
        if current.resource_id:
            resource = self.repository.get_resource(current.resource_id)
            self._validate_booking_rules(resource, new_interval, now)
            if resource.booking_rules.requires_approval:
                status = BookingStatus.PENDING

        replacement_id = new_id("bkg")

        def plan() -> ReservationPlan:
            latest = self.repository.get_booking(booking_id)
            old = transitions.mark_rescheduled(latest, replacement_id, changed_by, now, reason)
            replacement = latest.model_copy(update={
                "id": replacement_id,
                "interval": new_interval,
                "status": status,
                "status_history": [StatusChange(
                    to_status=status, changed_by=changed_by, changed_at=now,
                    reason=f"Rescheduled from {latest.id}"
                )],
                "rescheduled_from": latest.id,
                "rescheduled_to": None,
                "cancelled_by": None,
                "cancelled_at": None,
                "cancellation_reason": None,
                "approved_by": None,
                "approved_at": None,
                "created_at": now,
                "version": 0
            })
            return ReservationPlan(
                booking=replacement,
                exclude_booking_id=latest.id,
                extra_writes=[old],
                extra_expected={booking_scope(latest.id): latest.version},
                events=[
                    self._event(old, BookingEventType.RESCHEDULED, changed_by, now,
                                rescheduled_to=replacement_id, reason=reason),
                    self._event(replacement, BookingEventType.CREATED, changed_by, now,
                                rescheduled_from=latest.id),
                ]
            )

        stored = self._reserve(plan)
        logger.info(f"Booking {booking_id} rescheduled to {stored.id} at {stored.interval} by {changed_by}")
        return stored

    # --- Transitions ---

    def cancel_booking(self, booking_id: str, cancelled_by: str, reason: str = "") -> Booking:
        """Cancel. Cancelling an already-cancelled booking returns it unchanged."""
        booking = self._apply(
            booking_id,
            lambda b, now: transitions.cancel(b, cancelled_by, reason, now),
            BookingEventType.CANCELLED,
            cancelled_by
        )
        logger.info(f"Booking {booking_id} cancelled by {cancelled_by}")
        return booking

    def approve_booking(self, booking_id: str, approved_by: str) -> Booking:
        """
        Pending -> Confirmed. Capacity is re-checked when pending bookings
        do not already hold it.
        """
        recheck = not self.settings.count_pending_toward_capacity
        return self._apply(
            booking_id,
            lambda b, now: transitions.approve(b, approved_by, now),
            BookingEventType.CONFIRMED,
            approved_by,
            recheck=recheck
        )

    def start_booking(self, booking_id: str, actor: str) -> Booking:
        return self._apply(booking_id, lambda b, now: transitions.start(b, actor, now),
                           BookingEventType.STARTED, actor)

    def complete_booking(self, booking_id: str, actor: str) -> Booking:
        return self._apply(booking_id, lambda b, now: transitions.complete(b, actor, now),
                           BookingEventType.COMPLETED, actor)

    def mark_no_show(self, booking_id: str, actor: str) -> Booking:
        return self._apply(booking_id, lambda b, now: transitions.mark_no_show(b, actor, now),
                           BookingEventType.NO_SHOW, actor)

    # --- Alternatives ---

    def suggest_alternatives(
        self,
        candidate: TimeInterval,
        subject_ids: Sequence[str],
        resource_id: Optional[str] = None,
        limit: int = 5,
        search_days: int = 7,
        working_hours: Optional[WorkingHours] = None,
        buffer_minutes: int = 0,
        exclude_booking_id: Optional[str] = None,
        setup_minutes: int = 0,
        cleanup_minutes: int = 0
    ) -> List[TimeInterval]:
        """
        Conflict-free slots of the candidate's length, best first, searched
        from the candidate's day forward.

        Setup and cleanup time must be free around each suggestion, and a
        resource's advance-booking window is honoured. Slots in the past are
        never offered.
        """
        if limit < 1 or search_days < 1:
            raise ValidationError("limit and search_days must be positive")
        if setup_minutes < 0 or cleanup_minutes < 0:
            raise ValidationError("Setup and cleanup minutes cannot be negative")

        now = self.clock()
        resource = self.repository.get_resource(resource_id) if resource_id else None
        setup = timedelta(minutes=setup_minutes)
        cleanup = timedelta(minutes=cleanup_minutes)
        slots: List[TimeInterval] = []
        busy: List[TimeInterval] = []

        for offset in range(search_days):
            day = candidate.start.date() + timedelta(days=offset)
            day_start = datetime.combine(day, datetime.min.time(), tzinfo=candidate.start.tzinfo)
            day_window = TimeInterval(start=day_start, end=day_start + timedelta(days=1))

            found = self.slot_finder.find_common_slots(
                subject_ids, day, setup + candidate.duration + cleanup, resource_id,
                working_hours, buffer_minutes, exclude_booking_id
            )
            for occupied in found:
                slot = TimeInterval(start=occupied.start + setup, end=occupied.end - cleanup)
                if slot.start < now:
                    continue
                if resource is not None and not resource.within_advance_window(slot, now):
                    continue
                slots.append(slot)
            busy.extend(self.slot_finder.common_busy(
                subject_ids, day_window, resource_id, 0, exclude_booking_id
            ))

        ranked = self.scorer.rank(slots, candidate, busy)
        return ranked[:limit]

    # --- Internals ---

    def _reserve(self, build_plan: Callable[[], ReservationPlan]) -> Booking:
        """
        Check-then-reserve with optimistic retry.

        Tokens are read before the conflict check; the commit only lands if
        none of them moved. A lost race is retried from scratch and, once
        the attempts run out, reported as a plain conflict.
        """
        attempts = self.settings.max_reserve_attempts
        last_stale: List[str] = []

        for attempt in range(1, attempts + 1):
            plan = build_plan()
            booking = plan.booking

            keys = [subject_scope(s) for s in booking.subject_ids]
            if booking.resource_id:
                keys.append(resource_scope(booking.resource_id))
            expected = self.repository.scope_versions(keys)
            # A new booking only lands if its id has never been written
            expected[booking_scope(booking.id)] = booking.version
            expected.update(plan.extra_expected)

            result = self.detector.check(
                booking.occupied_interval,
                booking.subject_ids,
                booking.resource_id,
                plan.buffer_minutes,
                plan.exclude_booking_id
            )
            if not result.available:
                logger.warning(
                    f"Booking request {booking.interval} refused: "
                    f"{', '.join(c.constraint_type for c in result.conflicts)}"
                )
                raise ConflictError(
                    "Requested interval is not available",
                    conflicts=result.conflicts,
                    details={
                        "capacity_used": result.capacity_used,
                        "capacity_available": result.capacity_available
                    }
                )

            try:
                stored = self.repository.commit([booking, *plan.extra_writes], expected, plan.events)
                return stored[0]
            except ConcurrencyConflictError as exc:
                if booking.version == 0 and self._booking_id_taken(booking.id):
                    raise _duplicate_booking(booking.id) from exc
                last_stale = exc.stale_keys
                logger.debug(f"Reservation race on {exc.stale_keys} (attempt {attempt}/{attempts})")

        logger.warning(f"Reservation gave up after {attempts} attempts; contended scopes: {last_stale}")
        raise ConflictError(
            "Requested interval was taken by a concurrent booking",
            code="ConcurrentReservation",
            details={"attempts": attempts, "stale_keys": last_stale}
        )

    def _apply(
        self,
        booking_id: str,
        transition: Callable[[Booking, datetime], Booking],
        event_type: BookingEventType,
        actor: str,
        recheck: bool = False
    ) -> Booking:
        """Apply a pure transition and store it conditioned on the booking's version."""
        attempts = self.settings.max_reserve_attempts
        for attempt in range(1, attempts + 1):
            current = self.repository.get_booking(booking_id)
            now = self.clock()
            updated = transition(current, now)
            if updated is current:
                return current

            expected = {booking_scope(booking_id): current.version}
            if recheck:
                expected.update(self._check_or_raise(updated))

            event = self._event(updated, event_type, actor, now)
            try:
                return self.repository.commit([updated], expected, [event])[0]
            except ConcurrencyConflictError:
                logger.debug(f"Booking {booking_id} changed concurrently (attempt {attempt}/{attempts})")

        raise ConflictError(
            f"Booking {booking_id} is being modified concurrently",
            code="ConcurrentModification",
            details={"attempts": attempts}
        )

    def _booking_id_taken(self, booking_id: str) -> bool:
        key = booking_scope(booking_id)
        return self.repository.scope_versions([key])[key] != 0

    def _check_or_raise(self, booking: Booking) -> Dict[str, int]:
        """Read tokens, then check the booking against everyone else. Returns the tokens."""
        keys = [subject_scope(s) for s in booking.subject_ids]
        if booking.resource_id:
            keys.append(resource_scope(booking.resource_id))
        versions = self.repository.scope_versions(keys)
        result = self.detector.check(
            booking.occupied_interval, booking.subject_ids, booking.resource_id,
            exclude_booking_id=booking.id
        )
        if not result.available:
            raise ConflictError("Booking no longer fits", conflicts=result.conflicts)
        return versions

    def _validate_request(
        self,
        candidate: TimeInterval,
        subject_ids: Iterable[str],
        resource_id: Optional[str],
        buffer_minutes: int
    ) -> List[str]:
        if not isinstance(candidate, TimeInterval):
            raise ValidationError("Candidate must be a TimeInterval")
        if (candidate.start.tzinfo is None) != (self.clock().tzinfo is None):
            raise ValidationError("Candidate and clock must both be naive or both timezone-aware")
        subjects = list(dict.fromkeys(subject_ids))
        if any(not s for s in subjects):
            raise ValidationError("Subject ids cannot be empty")
        if not subjects and not resource_id:
            raise ValidationError("A booking needs at least one subject or a resource")
        if buffer_minutes < 0:
            raise ValidationError("Buffer minutes cannot be negative")
        return subjects

    def _validate_booking_rules(self, resource, candidate: TimeInterval, now: datetime) -> None:
        rules = resource.booking_rules
        minutes = candidate.duration.total_seconds() / 60

        if minutes < rules.min_duration_minutes:
            raise ValidationError(
                f"{resource.name} bookings must last at least {rules.min_duration_minutes} minutes",
                details={"duration_minutes": minutes}
            )
        if minutes > rules.max_duration_minutes:
            raise ValidationError(
                f"{resource.name} bookings cannot exceed {rules.max_duration_minutes} minutes",
                details={"duration_minutes": minutes}
            )
        if not resource.within_advance_window(candidate, now):
            raise ValidationError(
                f"{resource.name} must be booked between {rules.min_advance_hours} hours "
                f"and {rules.max_advance_days} days ahead",
                details={"start": candidate.start.isoformat(), "now": now.isoformat()}
            )

    @staticmethod
    def _event(booking: Booking, event_type: BookingEventType, actor: str, at: datetime, **payload) -> BookingEvent:
        return BookingEvent(
            booking_id=booking.id,
            event_type=event_type,
            occurred_at=at,
            actor=actor,
            payload={
                "status": booking.status.value,
                "start": booking.interval.start.isoformat(),
                "end": booking.interval.end.isoformat(),
                **payload
            }
        )


def _duplicate_booking(booking_id: str) -> ConflictError:
    return ConflictError(
        f"Booking {booking_id} already exists",
        code="DuplicateBooking",
        details={"booking_id": booking_id}
    )
