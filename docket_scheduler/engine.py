"""
The Docket Scheduling Engine.

One object the host CRUD/API layer talks to. It wires the pieces
together from a repository and settings:
1. Availability (registry + conflict detector) - "is this person free?"
2. Slots - "when could we meet?"
3. Bookings (orchestrator) - reserve, cancel, reschedule, advance status.
4. Deadlines - court-rule arithmetic and extensions.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from docket_models import (
    BookableResource,
    Booking,
    Deadline,
    DeadlineStatus,
    ResourceType,
    TimeInterval,
    WorkingHours,
)
from .config import SchedulerSettings, get_settings
from .conflicts import ConflictDetector, ConflictResult
from .deadlines import DateLike, DeadlineCalculator, DeadlineService
from .errors import validation_guard
from .orchestrator import BookingOrchestrator
from .registry import AvailabilityRegistry
from .repository import SchedulingRepository
from .slots import Hours, SlotFinder

logger = logging.getLogger(__name__)


class SchedulingEngine:
    """
    Facade over the scheduling components.
    Holds no state of its own beyond its collaborators.
    """

    def __init__(
        self,
        repository: SchedulingRepository,
        settings: Optional[SchedulerSettings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.clock = clock or datetime.now

        # Initialize Helpers
        self.registry = AvailabilityRegistry(repository, self.settings, self.clock)
        self.detector = ConflictDetector(self.registry)
        self.slots = SlotFinder(self.registry)
        self.orchestrator = BookingOrchestrator(repository, self.registry, self.settings, self.clock)
        self.calculator = DeadlineCalculator(self.settings)
        self.deadlines = DeadlineService(repository, self.calculator, self.clock)
        logger.debug(f"Scheduling engine ready ({len(self.settings.holidays)} holidays, "
                     f"{self.settings.max_reserve_attempts} reserve attempts)")

    # --- Availability ---

    def check_availability(
        self,
        subject_id: str,
        start: datetime,
        end: datetime,
        buffer_minutes: int = 0
    ) -> Dict[str, Any]:
        """{available: bool, conflicts: [...]} for one subject."""
        with validation_guard("Invalid interval"):
            candidate = TimeInterval(start=start, end=end)
        return self.detector.check_conflicts(candidate, [subject_id], buffer_minutes).to_dict()

    def check_conflicts(
        self,
        candidate: TimeInterval,
        subject_ids: Iterable[str],
        resource_id: Optional[str] = None,
        buffer_minutes: int = 0,
        exclude_booking_id: Optional[str] = None
    ) -> ConflictResult:
        return self.detector.check(candidate, subject_ids, resource_id, buffer_minutes, exclude_booking_id)

    def busy_intervals(self, subject_id: str, start: datetime, end: datetime) -> List[TimeInterval]:
        return self.registry.busy_intervals(subject_id, start, end)

    def find_available_subjects(self, candidate: TimeInterval, subject_ids: Iterable[str]) -> List[str]:
        return self.detector.find_available_subjects(candidate, subject_ids)

    def find_available_resources(
        self,
        candidate: TimeInterval,
        resource_type: Optional[ResourceType] = None,
        min_capacity: int = 1
    ) -> List[BookableResource]:
        return self.detector.find_available_resources(candidate, resource_type, min_capacity)

    # --- Slots ---

    def find_available_slots(
        self,
        subject_id: str,
        day: date,
        slot_duration_minutes: Optional[int] = None,
        working_hours: Optional[Hours] = None
    ) -> List[Dict[str, str]]:
        """[{start, end}, ...] of open slots for the day."""
        minutes = self.settings.default_slot_minutes if slot_duration_minutes is None else slot_duration_minutes
        slots = self.slots.find_slots(subject_id, day, minutes, working_hours)
        return [{"start": s.start.isoformat(), "end": s.end.isoformat()} for s in slots]

    def find_common_slots(
        self,
        subject_ids: Sequence[str],
        day: date,
        slot_duration_minutes: Optional[int] = None,
        resource_id: Optional[str] = None,
        working_hours: Optional[WorkingHours] = None
    ) -> List[TimeInterval]:
        minutes = self.settings.default_slot_minutes if slot_duration_minutes is None else slot_duration_minutes
        return self.slots.find_common_slots(subject_ids, day, minutes, resource_id, working_hours)

    def find_resource_slots(
        self,
        resource_id: str,
        day: date,
        slot_duration_minutes: Optional[int] = None
    ) -> List[TimeInterval]:
        return self.slots.find_resource_slots(resource_id, day, slot_duration_minutes)

    # --- Bookings ---

    def request_booking(
        self,
        candidate: TimeInterval,
        subject_ids: Iterable[str],
        resource_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **options
    ) -> Booking:
        return self.orchestrator.request_booking(candidate, subject_ids, resource_id, metadata, **options)

    def cancel_booking(self, booking_id: str, cancelled_by: str, reason: str = "") -> Booking:
        return self.orchestrator.cancel_booking(booking_id, cancelled_by, reason)

    def reschedule(
        self,
        booking_id: str,
        new_interval: TimeInterval,
        changed_by: str,
        reason: str = ""
    ) -> Booking:
        return self.orchestrator.reschedule_booking(booking_id, new_interval, changed_by, reason)

    def approve_booking(self, booking_id: str, approved_by: str) -> Booking:
        return self.orchestrator.approve_booking(booking_id, approved_by)

    def start_booking(self, booking_id: str, actor: str) -> Booking:
        return self.orchestrator.start_booking(booking_id, actor)

    def complete_booking(self, booking_id: str, actor: str) -> Booking:
        return self.orchestrator.complete_booking(booking_id, actor)

    def mark_no_show(self, booking_id: str, actor: str) -> Booking:
        return self.orchestrator.mark_no_show(booking_id, actor)

    def suggest_alternatives(
        self,
        candidate: TimeInterval,
        subject_ids: Sequence[str],
        resource_id: Optional[str] = None,
        limit: int = 5,
        **options
    ) -> List[TimeInterval]:
        return self.orchestrator.suggest_alternatives(candidate, subject_ids, resource_id, limit, **options)

    # --- Deadlines ---

    def calculate_deadline(
        self,
        trigger_date: DateLike,
        business_days_to_add: int,
        holidays: Optional[Iterable[date]] = None,
        skip_weekends: bool = True
    ) -> date:
        return self.calculator.calculate(trigger_date, business_days_to_add, holidays, skip_weekends)

    def create_deadline(self, title: str, **fields) -> Deadline:
        return self.deadlines.create_deadline(title, **fields)

    def extend_deadline(
        self,
        deadline_id: str,
        new_due_date: DateLike,
        reason: str,
        granted_by: str
    ) -> Deadline:
        return self.deadlines.extend_deadline(deadline_id, new_due_date, reason, granted_by)

    def deadline_status(self, deadline_id: str) -> DeadlineStatus:
        return self.deadlines.status_of(deadline_id)

    def complete_deadline(self, deadline_id: str, completed_by: str) -> Deadline:
        return self.deadlines.complete_deadline(deadline_id, completed_by)

    def cancel_deadline(self, deadline_id: str, cancelled_by: str, reason: str = "") -> Deadline:
        return self.deadlines.cancel_deadline(deadline_id, cancelled_by, reason)

    def upcoming_deadlines(self, days: int = 30) -> List[Deadline]:
        return self.deadlines.find_upcoming(days)

    def overdue_deadlines(self) -> List[Deadline]:
        return self.deadlines.find_overdue()
