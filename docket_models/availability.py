"""
Availability data models for the Docket Scheduling Engine.

An AvailabilityBlock is a time range an attorney (the 'subject') has marked
on their calendar: a vacation, a standing court morning, a tentative hold.
Most kinds make the subject busy; 'Available' and 'Working Remotely' do not.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator
from datetime import datetime, timedelta

from .interval import TimeInterval
from .recurrence import RecurrencePattern


class BlockKind(str, Enum):
    """What the subject is doing during the block."""
    AVAILABLE = "Available"
    BUSY = "Busy"
    OUT_OF_OFFICE = "Out of Office"
    TENTATIVE = "Tentative"
    WORKING_REMOTELY = "Working Remotely"
    IN_COURT = "In Court"
    IN_MEETING = "In Meeting"
    TIME_BLOCK = "Time Block"
    VACATION = "Vacation"
    SICK_LEAVE = "Sick Leave"


# Kinds that never make a subject busy. Tentative is decided by policy.
NON_BLOCKING_KINDS = frozenset({BlockKind.AVAILABLE, BlockKind.WORKING_REMOTELY})


class BlockStatus(str, Enum):
    ACTIVE = "Active"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"


class AvailabilityBlock(BaseModel):
    """
    A span of a subject's calendar, optionally repeating.

    For a recurring block the interval is the first occurrence: it anchors
    the pattern and supplies the occurrence time of day.
    """

    id: str = Field(description="Unique identifier")
    subject_id: str = Field(min_length=1, description="Attorney or other schedulable person")
    interval: TimeInterval = Field(description="The blocked range (first occurrence if recurring)")
    kind: BlockKind = Field(default=BlockKind.BUSY, description="Availability type")
    recurrence: Optional[RecurrencePattern] = Field(default=None, description="Repeat rule, if any")
    status: BlockStatus = Field(default=BlockStatus.ACTIVE, description="Stored lifecycle state")

    all_day: bool = Field(default=False)
    reason: str = Field(default="")
    location: str = Field(default="")

    buffer_before_minutes: int = Field(default=0, ge=0)
    buffer_after_minutes: int = Field(default=0, ge=0)

    # --- Audit ---
    created_by: str = Field(default="system")
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    version: int = Field(default=0, ge=0, description="Optimistic concurrency token")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "blk_0001",
            "subject_id": "atty_jones",
            "interval": {"start": "2024-07-09T08:30:00", "end": "2024-07-09T12:00:00"},
            "kind": "In Court",
            "recurrence": {
                "frequency": "Weekly",
                "weekdays": [1],
                "effective_from": "2024-07-09T08:30:00"
            },
            "status": "Active"
        }
    })

    @model_validator(mode='after')
    def resolve_recurrence(self):
        """Recurring blocks take their occurrence times from the block interval."""
        if self.recurrence is not None and not self.recurrence.is_resolved:
            self.recurrence = self.recurrence.resolve(self.interval.start, self.interval.end)
        return self

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def last_instant(self) -> Optional[datetime]:
        """The instant after which the block can no longer be in effect (None = never)."""
        if self.recurrence is None:
            return self.interval.end
        if self.recurrence.effective_until is None:
            return None
        # The last occurrence may start just before effective_until and run past it
        return (
            self.recurrence.effective_until
            + self.recurrence.occurrence_duration
            + timedelta(minutes=self.buffer_after_minutes)
        )

    @property
    def blocked_interval(self) -> TimeInterval:
        """The block interval widened by its own buffers."""
        return self.interval.with_buffer(self.buffer_before_minutes, self.buffer_after_minutes)

    def effective_status(self, now: datetime) -> BlockStatus:
        """
        Derive the lifecycle state at read time.

        An Active block whose last instant has passed reads as Expired.
        Nothing is written back, so calling this any number of times is safe.
        """
        if self.status != BlockStatus.ACTIVE:
            return self.status
        last = self.last_instant
        if last is not None and last <= now:
            return BlockStatus.EXPIRED
        return BlockStatus.ACTIVE

    def cancel(self, cancelled_by: str, at: datetime) -> "AvailabilityBlock":
        """Return a cancelled copy. Cancelling twice returns the block unchanged."""
        if self.status == BlockStatus.CANCELLED:
            return self
        return self.model_copy(update={
            "status": BlockStatus.CANCELLED,
            "cancelled_by": cancelled_by,
            "cancelled_at": at
        })
