"""
Data models package for the Docket Scheduling Engine.

This package exports the pillars of the data architecture:
1. Time (TimeInterval, RecurrencePattern)
2. Supply (AvailabilityBlock, BookableResource)
3. Output (Booking, BookingEvent)
4. Deadlines (Deadline and its derived status)
"""

from .interval import (
    TimeInterval,
    overlaps,
    contains,
    with_buffer,
    coalesce
)

from .recurrence import (
    Frequency,
    Weekday,
    RecurrencePattern
)

from .availability import (
    AvailabilityBlock,
    BlockKind,
    BlockStatus,
    NON_BLOCKING_KINDS
)

from .resource import (
    BookableResource,
    BookingRules,
    DayHours,
    OperatingHours,
    ResourceStatus,
    ResourceType,
    WorkingHours
)

from .booking import (
    ACTIVE_STATUSES,
    OCCUPYING_STATUSES,
    Booking,
    BookingEvent,
    BookingEventType,
    BookingStatus,
    StatusChange
)

from .deadline import (
    CalculationMethod,
    Deadline,
    DeadlinePriority,
    DeadlineStatus,
    DeadlineType,
    Extension,
    Reminder,
    derive_status
)

__all__ = [
    # --- Time Primitives ---
    "TimeInterval",
    "overlaps",
    "contains",
    "with_buffer",
    "coalesce",
    "Frequency",
    "Weekday",
    "RecurrencePattern",

    # --- Supply Models ---
    "AvailabilityBlock",
    "BlockKind",
    "BlockStatus",
    "NON_BLOCKING_KINDS",
    "BookableResource",
    "BookingRules",
    "DayHours",
    "OperatingHours",
    "ResourceStatus",
    "ResourceType",
    "WorkingHours",

    # --- Output Models ---
    "ACTIVE_STATUSES",
    "OCCUPYING_STATUSES",
    "Booking",
    "BookingEvent",
    "BookingEventType",
    "BookingStatus",
    "StatusChange",

    # --- Deadline Models ---
    "CalculationMethod",
    "Deadline",
    "DeadlinePriority",
    "DeadlineStatus",
    "DeadlineType",
    "Extension",
    "Reminder",
    "derive_status",
]
