"""
Recurrence data models for the Docket Scheduling Engine.

A RecurrencePattern describes how a block repeats (every 2 weeks on
Tuesday and Thursday, the 15th of each month, ...). It carries no dates
of its own beyond its effective range; expansion into concrete intervals
lives in docket_scheduler.recurrence.
"""

from enum import Enum
from typing import FrozenSet, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator
from datetime import date, datetime, time, timedelta


class Frequency(str, Enum):
    """Defines the recurrence cadence."""
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


class Weekday(int, Enum):
    """Day of week, numbered like date.weekday() (0=Monday)."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def from_name(cls, name: str) -> "Weekday":
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown weekday: {name}") from None


class RecurrencePattern(BaseModel):
    """Configuration for how often a block repeats."""

    frequency: Frequency = Field(description="The recurrence cadence")
    interval: int = Field(default=1, ge=1, description="Step between occurrences (every N days/weeks/months)")

    weekdays: FrozenSet[Weekday] = Field(
        default_factory=frozenset,
        description="Days of the week the pattern fires on. Only valid for Weekly."
    )

    effective_from: datetime = Field(description="Anchor instant; the first possible occurrence")
    effective_until: Optional[datetime] = Field(
        default=None,
        description="No occurrence starts at or after this instant. None = open ended."
    )

    # Time-of-day of each occurrence. Resolved from the owning block when omitted.
    start_time: Optional[time] = Field(default=None, description="Occurrence start time of day")
    end_time: Optional[time] = Field(
        default=None,
        description="Occurrence end time of day; at or before start_time means it ends the next day"
    )

    model_config = ConfigDict(frozen=True, json_schema_extra={
        "example": {
            "frequency": "Weekly",
            "interval": 1,
            "weekdays": [0, 2],
            "effective_from": "2024-07-01T08:00:00",
            "effective_until": "2024-12-31T00:00:00",
            "start_time": "08:00:00",
            "end_time": "09:00:00"
        }
    })

    @model_validator(mode='after')
    def validate_configuration(self):
        """Ensure the recurrence configuration is valid."""
        if self.frequency == Frequency.WEEKLY and not self.weekdays:
            raise ValueError("Weekly pattern requires at least one weekday")

        if self.frequency != Frequency.WEEKLY and self.weekdays:
            raise ValueError(f"{self.frequency.value} pattern cannot specify weekdays")

        if self.effective_until is not None and self.effective_until <= self.effective_from:
            raise ValueError("effective_until must be after effective_from")
        return self

    @property
    def is_resolved(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    @property
    def occurrence_duration(self) -> Optional[timedelta]:
        """Length of one occurrence. An end time at or before the start time rolls into the next day."""
        if not self.is_resolved:
            return None
        base = date(2000, 1, 3)
        start = datetime.combine(base, self.start_time)
        end = datetime.combine(base, self.end_time)
        if end <= start:
            end += timedelta(days=1)
        return end - start

    def resolve(self, start: datetime, end: datetime) -> "RecurrencePattern":
        """Fill in missing occurrence times from a template interval."""
        if self.is_resolved:
            return self
        return self.model_copy(update={
            "start_time": self.start_time or start.time(),
            "end_time": self.end_time or end.time()
        })
