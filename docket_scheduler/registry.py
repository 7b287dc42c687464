"""
Availability Registry.

Answers "when is this subject (or resource) busy?" for a query window by
merging explicit blocks, expanded recurring blocks and active bookings,
then coalescing the result so downstream code never sees redundant ranges.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set, Tuple

from docket_models import (
    AvailabilityBlock,
    BlockKind,
    BlockStatus,
    Booking,
    BookingStatus,
    NON_BLOCKING_KINDS,
    OCCUPYING_STATUSES,
    TimeInterval,
    coalesce,
)
from .config import SchedulerSettings, get_settings
from .errors import validation_guard
from .recurrence import expand
from .repository import SchedulingRepository

logger = logging.getLogger(__name__)


def concurrency_segments(intervals: Iterable[TimeInterval]) -> List[Tuple[TimeInterval, int]]:
    """
    Sweep the intervals and return (segment, depth) pieces where depth >= 1.

    Depth is how many of the input intervals cover that segment.
    """
    edges: List[Tuple[datetime, int]] = []
    for interval in intervals:
        edges.append((interval.start, 1))
        edges.append((interval.end, -1))
    # Ends sort before starts at the same instant (half-open ranges)
    edges.sort(key=lambda e: (e[0], e[1]))

    segments: List[Tuple[TimeInterval, int]] = []
    depth = 0
    prev: Optional[datetime] = None
    for instant, delta in edges:
        if prev is not None and depth > 0 and instant > prev:
            segments.append((TimeInterval(start=prev, end=instant), depth))
        depth += delta
        prev = instant
    return segments


def peak_concurrency(intervals: Iterable[TimeInterval], window: TimeInterval) -> int:
    """Highest number of intervals overlapping any single instant of `window`."""
    clipped = [c for c in (i.clip(window) for i in intervals) if c is not None]
    return max((depth for _, depth in concurrency_segments(clipped)), default=0)


class AvailabilityRegistry:
    """
    Busy-time view over the repository for subjects and resources.
    Read-only: it never writes, so it needs no locking.
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

    # --- Policy ---

    def is_blocking(self, kind: BlockKind) -> bool:
        if kind in NON_BLOCKING_KINDS:
            return False
        if kind == BlockKind.TENTATIVE:
            return self.settings.tentative_is_blocking
        return True

    @property
    def capacity_statuses(self) -> Set[BookingStatus]:
        statuses = set(OCCUPYING_STATUSES)
        if self.settings.count_pending_toward_capacity:
            statuses.add(BookingStatus.PENDING)
        return statuses

    # --- Subjects ---

    def busy_intervals(
        self,
        subject_id: str,
        window_start: datetime,
        window_end: datetime,
        exclude_booking_id: Optional[str] = None
    ) -> List[TimeInterval]:
        """
        Coalesced busy intervals of a subject that intersect the window.

        Intervals are returned whole (not clipped to the window).
        """
        with validation_guard("Invalid query window"):
            window = TimeInterval(start=window_start, end=window_end)

        busy: List[TimeInterval] = []
        for block in self.repository.blocks_for_subject(subject_id, window):
            if block.status == BlockStatus.CANCELLED or not self.is_blocking(block.kind):
                continue
            busy.extend(self._block_intervals(block, window))

        for booking in self.repository.bookings_for_subject(subject_id, window):
            if booking.id == exclude_booking_id:
                continue
            busy.append(booking.occupied_interval)

        merged = [i for i in coalesce(busy) if i.overlaps(window)]
        logger.debug(f"{subject_id}: {len(merged)} busy intervals in {window}")
        return merged

    def blocks_in_window(
        self,
        subject_id: str,
        window_start: datetime,
        window_end: datetime
    ) -> List[Tuple[AvailabilityBlock, BlockStatus]]:
        """The subject's calendar blocks with their status as of now, earliest first."""
        with validation_guard("Invalid query window"):
            window = TimeInterval(start=window_start, end=window_end)
        now = self.clock()
        blocks = self.repository.blocks_for_subject(subject_id, window)
        return [(b, b.effective_status(now)) for b in sorted(blocks, key=lambda b: b.interval.start)]

    def _block_intervals(self, block: AvailabilityBlock, window: TimeInterval) -> List[TimeInterval]:
        before, after = block.buffer_before_minutes, block.buffer_after_minutes
        if block.recurrence is None:
            return [block.blocked_interval]

        # A buffered occurrence can start up to `before` minutes after the window ends
        reach = window.with_buffer(after, before)
        return [
            occ.with_buffer(before, after)
            for occ in expand(block.recurrence, reach.start, reach.end, self.settings.max_occurrences)
        ]

    # --- Resources ---

    def capacity_bookings(
        self,
        resource_id: str,
        window: TimeInterval,
        exclude_booking_id: Optional[str] = None
    ) -> List[Booking]:
        """Bookings of the resource in the window that count against its capacity."""
        statuses = self.capacity_statuses
        return [
            b for b in self.repository.bookings_for_resource(resource_id, window)
            if b.status in statuses and b.id != exclude_booking_id
        ]

    def resource_busy_intervals(
        self,
        resource_id: str,
        window_start: datetime,
        window_end: datetime,
        exclude_booking_id: Optional[str] = None
    ) -> List[TimeInterval]:
        """
        Times the resource cannot take another booking: maintenance windows
        plus every stretch where bookings (with buffer) already fill capacity.
        """
        with validation_guard("Invalid query window"):
            window = TimeInterval(start=window_start, end=window_end)
        resource = self.repository.get_resource(resource_id)
        buffer = resource.booking_rules.buffer_minutes

        busy = [w for w in resource.maintenance_windows if w.overlaps(window)]

        occupied = [
            b.occupied_interval.with_buffer(buffer, buffer)
            for b in self.capacity_bookings(resource_id, window.with_buffer(buffer, buffer), exclude_booking_id)
        ]
        busy.extend(segment for segment, depth in concurrency_segments(occupied) if depth >= resource.capacity)

        return [i for i in coalesce(busy) if i.overlaps(window)]
