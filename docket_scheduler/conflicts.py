"""
Hard Constraint Validation Logic.

This module answers the binary question: "Can these people and this room
be booked for this interval?"
Subjects are exclusive (any overlap is a conflict). Resources have a
capacity, so for them the question is how many bookings already overlap
at the busiest instant of the candidate.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from docket_models import BookableResource, ResourceType, TimeInterval
from .registry import AvailabilityRegistry, peak_concurrency

logger = logging.getLogger(__name__)


@dataclass
class Conflict:
    """Detailed reason for rejection."""
    constraint_type: str  # e.g., "Overlap", "Capacity", "Maintenance", "OperatingHours"
    reason: str
    interval: TimeInterval
    subject_id: Optional[str] = None
    resource_id: Optional[str] = None
    booking_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.constraint_type,
            "reason": self.reason,
            "subject_id": self.subject_id,
            "resource_id": self.resource_id,
            "booking_id": self.booking_id,
            "start": self.interval.start.isoformat(),
            "end": self.interval.end.isoformat(),
        }


@dataclass
class ConflictResult:
    conflicts: List[Conflict] = field(default_factory=list)
    capacity_used: Optional[int] = None
    capacity_available: Optional[int] = None

    @property
    def available(self) -> bool:
        return not self.conflicts

    def merge(self, other: "ConflictResult") -> "ConflictResult":
        return ConflictResult(
            conflicts=self.conflicts + other.conflicts,
            capacity_used=other.capacity_used if other.capacity_used is not None else self.capacity_used,
            capacity_available=(
                other.capacity_available if other.capacity_available is not None else self.capacity_available
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "available": self.available,
            "conflicts": [c.to_dict() for c in self.conflicts],
        }
        if self.capacity_used is not None:
            payload["capacity_used"] = self.capacity_used
            payload["capacity_available"] = self.capacity_available
        return payload


class ConflictDetector:
    """
    Validates hard constraints for a candidate interval.
    """

    def __init__(self, registry: AvailabilityRegistry):
        self.registry = registry
        self.repository = registry.repository

    def check_conflicts(
        self,
        candidate: TimeInterval,
        subject_ids: Iterable[str],
        buffer_minutes: int = 0,
        exclude_booking_id: Optional[str] = None
    ) -> ConflictResult:
        """
        Test every subject's busy set against the buffered candidate.
        A subject with no overlapping busy interval is conflict-free.
        """
        checked = candidate.with_buffer(buffer_minutes, buffer_minutes)
        result = ConflictResult()

        for subject_id in sorted(set(subject_ids)):
            busy = self.registry.busy_intervals(subject_id, checked.start, checked.end, exclude_booking_id)
            for interval in busy:
                if interval.overlaps(checked):
                    result.conflicts.append(Conflict(
                        "Overlap",
                        f"{subject_id} is busy {interval}",
                        interval,
                        subject_id=subject_id
                    ))
        return result

    def check_resource(
        self,
        candidate: TimeInterval,
        resource_id: str,
        exclude_booking_id: Optional[str] = None
    ) -> ConflictResult:
        """
        Check a resource: bookable at all, open, not in maintenance, and
        with capacity left at the busiest instant of the (buffered) candidate.
        """
        resource = self.repository.get_resource(resource_id)
        result = ConflictResult()

        # 1. Resource state
        if not resource.accepts_bookings:
            result.conflicts.append(Conflict(
                "Unavailable", f"{resource.name} is {resource.status.value.lower()}",
                candidate, resource_id=resource_id
            ))

        # 2. Operating hours
        if not resource.within_operating_hours(candidate):
            result.conflicts.append(Conflict(
                "OperatingHours", f"{resource.name} is not open for the whole interval",
                candidate, resource_id=resource_id
            ))

        # 3. Maintenance
        for window in resource.maintenance_windows:
            if window.overlaps(candidate):
                result.conflicts.append(Conflict(
                    "Maintenance", f"{resource.name} is under maintenance",
                    window, resource_id=resource_id
                ))

        # 4. Capacity (count concurrent bookings at the busiest instant)
        buffer = resource.booking_rules.buffer_minutes
        checked = candidate.with_buffer(buffer, buffer)
        bookings = self.registry.capacity_bookings(resource_id, checked, exclude_booking_id)
        used = peak_concurrency([b.occupied_interval for b in bookings], checked)

        result.capacity_used = used
        result.capacity_available = max(0, resource.capacity - used)

        if used + 1 > resource.capacity:
            for booking in bookings:
                if booking.occupied_interval.overlaps(checked):
                    result.conflicts.append(Conflict(
                        "Capacity",
                        f"{resource.name} is full ({used}/{resource.capacity} in use)",
                        booking.occupied_interval,
                        resource_id=resource_id,
                        booking_id=booking.id
                    ))

        if not result.available:
            logger.debug(f"{resource_id}: {len(result.conflicts)} conflicts for {candidate}")
        return result

    def check(
        self,
        candidate: TimeInterval,
        subject_ids: Iterable[str],
        resource_id: Optional[str] = None,
        buffer_minutes: int = 0,
        exclude_booking_id: Optional[str] = None
    ) -> ConflictResult:
        """Subjects and (optionally) the resource in one result."""
        result = self.check_conflicts(candidate, subject_ids, buffer_minutes, exclude_booking_id)
        if resource_id:
            result = result.merge(self.check_resource(candidate, resource_id, exclude_booking_id))
        return result

    def find_available_subjects(self, candidate: TimeInterval, subject_ids: Iterable[str]) -> List[str]:
        """Subjects from the list with nothing blocking the candidate, in input order."""
        return [
            s for s in dict.fromkeys(subject_ids)
            if self.check_conflicts(candidate, [s]).available
        ]

    def find_available_resources(
        self,
        candidate: TimeInterval,
        resource_type: Optional[ResourceType] = None,
        min_capacity: int = 1
    ) -> List[BookableResource]:
        """Resources of the type (any type if None) that could take the candidate."""
        found = []
        for resource in self.repository.list_resources():
            if resource_type is not None and resource.resource_type != resource_type:
                continue
            if resource.capacity < min_capacity:
                continue
            if self.check_resource(candidate, resource.id).available:
                found.append(resource)
        return found
