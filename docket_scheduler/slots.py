"""
Slot Finder.

Enumerates open slots of a fixed length inside a day's working hours,
walking left to right around the coalesced busy set. Read-only.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional, Sequence, Union

from docket_models import OperatingHours, TimeInterval, WorkingHours, coalesce
from .errors import ValidationError
from .registry import AvailabilityRegistry

logger = logging.getLogger(__name__)

Hours = Union[WorkingHours, OperatingHours]


def walk_open_slots(
    open_window: TimeInterval,
    busy: Sequence[TimeInterval],
    slot_duration: timedelta
) -> List[TimeInterval]:
    """
    Emit back-to-back slots of `slot_duration` that fit entirely between busy intervals.

    `busy` must be coalesced and sorted. Busy time before the open instant is
    treated as starting at open; no partial slot is emitted at the close.
    """
    slots: List[TimeInterval] = []
    cursor = open_window.start

    for interval in busy:
        busy_start = min(max(interval.start, open_window.start), open_window.end)

        # Add slots before this busy period
        while cursor + slot_duration <= busy_start:
            slots.append(TimeInterval(start=cursor, end=cursor + slot_duration))
            cursor += slot_duration

        # Move cursor past the busy period
        if interval.end > cursor:
            cursor = interval.end

    # Remaining slots until close
    while cursor + slot_duration <= open_window.end:
        slots.append(TimeInterval(start=cursor, end=cursor + slot_duration))
        cursor += slot_duration

    return slots


def _as_duration(slot_duration: Union[int, timedelta]) -> timedelta:
    if isinstance(slot_duration, timedelta):
        duration = slot_duration
    else:
        duration = timedelta(minutes=slot_duration)
    if duration <= timedelta(0):
        raise ValidationError("Slot duration must be positive", details={"slot_duration": str(slot_duration)})
    return duration


class SlotFinder:
    """Finds free slots for subjects and resources."""

    def __init__(self, registry: AvailabilityRegistry):
        self.registry = registry
        self.settings = registry.settings

    def find_slots(
        self,
        subject_id: str,
        day: date,
        slot_duration: Union[int, timedelta],
        working_hours: Optional[Hours] = None
    ) -> List[TimeInterval]:
        """
        Open slots for one subject on one day.
        A closed day (weekend, no hours) yields an empty list, not an error.
        """
        duration = _as_duration(slot_duration)
        hours = working_hours or self.settings.default_working_hours

        open_window = hours.window_for(day)
        if open_window is None:
            return []

        busy = self.registry.busy_intervals(subject_id, open_window.start, open_window.end)
        slots = walk_open_slots(open_window, busy, duration)
        logger.debug(f"{subject_id} on {day}: {len(slots)} open slots of {duration}")
        return slots

    def find_slots_in_range(
        self,
        subject_id: str,
        start_day: date,
        end_day: date,
        slot_duration: Union[int, timedelta],
        working_hours: Optional[Hours] = None
    ) -> List[TimeInterval]:
        """Open slots for every day from start_day to end_day inclusive."""
        if end_day < start_day:
            raise ValidationError("end_day cannot be before start_day")

        slots: List[TimeInterval] = []
        current = start_day
        while current <= end_day:
            slots.extend(self.find_slots(subject_id, current, slot_duration, working_hours))
            current += timedelta(days=1)
        return slots

    def common_busy(
        self,
        subject_ids: Sequence[str],
        window: TimeInterval,
        resource_id: Optional[str] = None,
        buffer_minutes: int = 0,
        exclude_booking_id: Optional[str] = None
    ) -> List[TimeInterval]:
        """Union of every participant's busy time in the window, widened by the buffer."""
        reach = window.with_buffer(buffer_minutes, buffer_minutes)
        busy: List[TimeInterval] = []
        for subject_id in dict.fromkeys(subject_ids):
            busy.extend(
                b.with_buffer(buffer_minutes, buffer_minutes)
                for b in self.registry.busy_intervals(subject_id, reach.start, reach.end, exclude_booking_id)
            )
        if resource_id:
            busy.extend(self.registry.resource_busy_intervals(
                resource_id, window.start, window.end, exclude_booking_id
            ))
        return coalesce(busy)

    def find_common_slots(
        self,
        subject_ids: Sequence[str],
        day: date,
        slot_duration: Union[int, timedelta],
        resource_id: Optional[str] = None,
        working_hours: Optional[Hours] = None,
        buffer_minutes: int = 0,
        exclude_booking_id: Optional[str] = None
    ) -> List[TimeInterval]:
        """
        Slots on `day` when every subject and the resource are free together.
        With a resource, the slots fall inside its operating hours and, when
        given, inside `working_hours` as well.
        """
        duration = _as_duration(slot_duration)
        if resource_id:
            resource = self.registry.repository.get_resource(resource_id)
            if not resource.accepts_bookings:
                return []
            open_window = resource.operating_window(day)
            if open_window is not None and working_hours is not None:
                hours_window = working_hours.window_for(day)
                if hours_window is None:
                    return []
                open_window = open_window.intersection(hours_window)
        else:
            open_window = (working_hours or self.settings.default_working_hours).window_for(day)
        if open_window is None:
            return []

        busy = self.common_busy(subject_ids, open_window, resource_id, buffer_minutes, exclude_booking_id)
        return walk_open_slots(open_window, busy, duration)

    def find_resource_slots(
        self,
        resource_id: str,
        day: date,
        slot_duration: Optional[Union[int, timedelta]] = None
    ) -> List[TimeInterval]:
        """
        Open slots for a resource inside its operating hours.
        Defaults to the resource's minimum booking duration.
        """
        resource = self.registry.repository.get_resource(resource_id)
        if not resource.accepts_bookings:
            return []

        duration = _as_duration(
            slot_duration if slot_duration is not None else resource.booking_rules.min_duration_minutes
        )
        open_window = resource.operating_window(day)
        if open_window is None:
            return []

        busy = self.registry.resource_busy_intervals(resource_id, open_window.start, open_window.end)
        return walk_open_slots(open_window, busy, duration)
