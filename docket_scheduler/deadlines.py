"""
Deadline Calculator and Deadline Service.

Court-rule arithmetic: a response due "2 business days after service"
skips weekends and court holidays. Extensions keep the due date that was
in force before the first one. Status is always derived, never stored.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional, Union

from pydantic import TypeAdapter

from docket_models import (
    CalculationMethod,
    Deadline,
    DeadlineStatus,
    Extension,
)
from .config import SchedulerSettings, get_settings
from .errors import (
    ConcurrencyConflictError,
    ConflictError,
    InvalidTransitionError,
    ValidationError,
    validation_guard,
)
from .repository import SchedulingRepository, deadline_scope, new_id

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]

_date_adapter = TypeAdapter(date)


def to_date(value: DateLike, field_name: str = "date") -> date:
    """Accept a date, a datetime (its calendar date) or an ISO string."""
    if isinstance(value, datetime):
        return value.date()
    with validation_guard(f"Invalid {field_name}"):
        return _date_adapter.validate_python(value)


def is_business_day(day: date, holidays: Iterable[date] = (), skip_weekends: bool = True) -> bool:
    if skip_weekends and day.weekday() >= 5:
        return False
    return day not in holidays


def calculate(
    trigger_date: DateLike,
    business_days_to_add: int,
    holidays: Iterable[date] = (),
    skip_weekends: bool = True
) -> date:
    """
    Add business days one at a time, skipping Saturday/Sunday and holidays.

    The trigger date itself is never counted. With zero days the trigger
    date is returned unchanged. skip_weekends=False counts calendar days
    but still skips holidays.
    """
    if business_days_to_add < 0:
        raise ValidationError("business_days_to_add cannot be negative",
                              details={"business_days_to_add": business_days_to_add})

    current = to_date(trigger_date, "trigger_date")
    holiday_set = frozenset(to_date(h, "holiday") for h in holidays)
    remaining = business_days_to_add

    while remaining > 0:
        current += timedelta(days=1)
        if is_business_day(current, holiday_set, skip_weekends):
            remaining -= 1
    return current


def extend(
    deadline: Deadline,
    new_due_date: DateLike,
    reason: str,
    granted_by: str,
    at: datetime
) -> Deadline:
    """
    Return the deadline with an extension applied.

    original_due_date is captured on the first extension only. The new date
    is not required to be later than the current one.
    """
    new_due = to_date(new_due_date, "new_due_date")
    if not granted_by:
        raise ValidationError("An extension needs the name of whoever granted it")

    record = Extension(
        previous_due_date=deadline.due_date,
        new_due_date=new_due,
        reason=reason,
        granted_by=granted_by,
        granted_at=at
    )
    return deadline.model_copy(update={
        "original_due_date": deadline.original_due_date if deadline.extended else deadline.due_date,
        "extended": True,
        "due_date": new_due,
        "extensions": [*deadline.extensions, record]
    })


def complete(deadline: Deadline, completed_by: str, at: datetime) -> Deadline:
    if deadline.cancelled:
        raise InvalidTransitionError(f"Deadline {deadline.id} is cancelled")
    if deadline.completed:
        return deadline
    return deadline.model_copy(update={"completed": True, "completed_by": completed_by, "completed_at": at})


def cancel(deadline: Deadline, cancelled_by: str, reason: str, at: datetime) -> Deadline:
    if deadline.completed:
        raise InvalidTransitionError(f"Deadline {deadline.id} is already completed")
    if deadline.cancelled:
        return deadline
    return deadline.model_copy(update={
        "cancelled": True,
        "cancelled_by": cancelled_by,
        "cancelled_at": at,
        "cancellation_reason": reason
    })


class DeadlineCalculator:
    """calculate() bound to the configured holiday calendar."""

    def __init__(self, settings: Optional[SchedulerSettings] = None):
        self.settings = settings or get_settings()

    @property
    def holidays(self) -> frozenset:
        return self.settings.holiday_set

    def calculate(
        self,
        trigger_date: DateLike,
        business_days_to_add: int,
        holidays: Optional[Iterable[date]] = None,
        skip_weekends: bool = True
    ) -> date:
        """Explicit holidays replace the configured calendar for this call."""
        calendar = self.holidays if holidays is None else holidays
        return calculate(trigger_date, business_days_to_add, calendar, skip_weekends)

    def is_business_day(self, day: date) -> bool:
        return is_business_day(day, self.holidays)


class DeadlineService:
    """
    Deadline operations against the repository.
    Each write is conditioned on the deadline's version token.
    """

    def __init__(
        self,
        repository: SchedulingRepository,
        calculator: Optional[DeadlineCalculator] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.repository = repository
        self.calculator = calculator or DeadlineCalculator()
        self.clock = clock or datetime.now

    def create_deadline(
        self,
        title: str,
        trigger_date: Optional[DateLike] = None,
        business_days: Optional[int] = None,
        due_date: Optional[DateLike] = None,
        holidays: Optional[Iterable[date]] = None,
        **fields
    ) -> Deadline:
        """
        Create from a trigger date plus business days (Court Rules) or from
        an explicit due date (Manual).
        """
        if due_date is None:
            if trigger_date is None or business_days is None:
                raise ValidationError("Provide either due_date or trigger_date with business_days")
            due = self.calculator.calculate(trigger_date, business_days, holidays)
            fields.setdefault("calculation_method", CalculationMethod.COURT_RULES)
        else:
            due = to_date(due_date, "due_date")

        with validation_guard("Invalid deadline"):
            deadline = Deadline(
                id=fields.pop("id", None) or new_id("dl"),
                title=title,
                trigger_date=to_date(trigger_date, "trigger_date") if trigger_date is not None else None,
                business_days=business_days,
                due_date=due,
                **fields
            )

        try:
            stored = self.repository.commit([deadline], {deadline_scope(deadline.id): 0})[0]
        except ConcurrencyConflictError as exc:
            raise ConflictError(f"Deadline {deadline.id} already exists") from exc
        logger.info(f"Deadline {stored.id} '{stored.title}' due {stored.due_date}")
        return stored

    def get_deadline(self, deadline_id: str) -> Deadline:
        return self.repository.get_deadline(deadline_id)

    def status_of(self, deadline_id: str) -> DeadlineStatus:
        return self.repository.get_deadline(deadline_id).status_at(self.clock())

    def extend_deadline(
        self,
        deadline_id: str,
        new_due_date: DateLike,
        reason: str,
        granted_by: str
    ) -> Deadline:
        new_due = to_date(new_due_date, "new_due_date")
        updated = self._update(
            deadline_id,
            lambda d: extend(d, new_due, reason, granted_by, self.clock())
        )
        logger.info(
            f"Deadline {deadline_id} extended to {updated.due_date} by {granted_by} "
            f"(originally {updated.original_due_date})"
        )
        return updated

    def complete_deadline(self, deadline_id: str, completed_by: str) -> Deadline:
        return self._update(deadline_id, lambda d: complete(d, completed_by, self.clock()))

    def cancel_deadline(self, deadline_id: str, cancelled_by: str, reason: str = "") -> Deadline:
        return self._update(deadline_id, lambda d: cancel(d, cancelled_by, reason, self.clock()))

    def find_upcoming(self, days: int = 30, now: Optional[datetime] = None) -> List[Deadline]:
        """Open deadlines due between today and `days` from now, soonest first."""
        now = now or self.clock()
        horizon = now.date() + timedelta(days=days)
        open_statuses = {DeadlineStatus.UPCOMING, DeadlineStatus.TODAY, DeadlineStatus.EXTENDED}
        found = [
            d for d in self.repository.list_deadlines()
            if d.status_at(now) in open_statuses and d.due_date <= horizon
        ]
        return sorted(found, key=_due_then_priority)

    def find_overdue(self, now: Optional[datetime] = None) -> List[Deadline]:
        now = now or self.clock()
        found = [d for d in self.repository.list_deadlines() if d.is_overdue(now)]
        return sorted(found, key=_due_then_priority)

    def _update(self, deadline_id: str, transition: Callable[[Deadline], Deadline]) -> Deadline:
        attempts = self.calculator.settings.max_reserve_attempts
        for attempt in range(1, attempts + 1):
            current = self.repository.get_deadline(deadline_id)
            updated = transition(current)
            if updated is current:
                return current
            try:
                return self.repository.commit([updated], {deadline_scope(deadline_id): current.version})[0]
            except ConcurrencyConflictError:
                logger.debug(f"Deadline {deadline_id} changed underneath us (attempt {attempt}/{attempts})")
        logger.warning(f"Deadline {deadline_id}: gave up after {attempts} concurrent modifications")
        raise ConflictError(f"Deadline {deadline_id} is being modified concurrently")


_PRIORITY_RANK = {"Critical": 0, "High": 1, "Medium": 2, "Low": 3}


def _due_then_priority(deadline: Deadline):
    return deadline.due_date, _PRIORITY_RANK.get(deadline.priority.value, 4)
