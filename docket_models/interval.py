"""
Interval primitive for the Docket Scheduling Engine.

Every busy block, booking and slot in the engine is a half-open range
[start, end). Touching endpoints never overlap, so a 09:00-10:00 hearing
and a 10:00-11:00 hearing can sit back to back.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator


class TimeInterval(BaseModel):
    """
    An immutable half-open time range [start, end).

    Both ends must be naive or both timezone-aware. The engine compares
    instants directly, so one deployment keeps to a single convention; the
    default working hours and clock are naive.
    """

    start: datetime = Field(description="Inclusive start instant")
    end: datetime = Field(description="Exclusive end instant")

    model_config = ConfigDict(frozen=True, json_schema_extra={
        "example": {
            "start": "2024-07-08T09:00:00",
            "end": "2024-07-08T10:30:00"
        }
    })

    @model_validator(mode='after')
    def validate_order(self):
        if (self.start.tzinfo is None) != (self.end.tzinfo is None):
            raise ValueError("Interval cannot mix naive and timezone-aware instants")
        if self.end <= self.start:
            raise ValueError("Interval end must be strictly after start")
        return self

    @classmethod
    def of(cls, start: datetime, minutes: int) -> "TimeInterval":
        """Build an interval from a start instant and a length in minutes."""
        return cls(start=start, end=start + timedelta(minutes=minutes))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    def overlaps(self, other: "TimeInterval") -> bool:
        return overlaps(self, other)

    def contains(self, instant: datetime) -> bool:
        return contains(self, instant)

    def covers(self, other: "TimeInterval") -> bool:
        """True if `other` lies entirely inside this interval."""
        return self.start <= other.start and other.end <= self.end

    def with_buffer(self, before_minutes: int = 0, after_minutes: int = 0) -> "TimeInterval":
        return with_buffer(self, before_minutes, after_minutes)

    def intersection(self, other: "TimeInterval") -> Optional["TimeInterval"]:
        """The shared part of two intervals, or None if they do not overlap."""
        if not self.overlaps(other):
            return None
        return TimeInterval(start=max(self.start, other.start), end=min(self.end, other.end))

    def clip(self, window: "TimeInterval") -> Optional["TimeInterval"]:
        return self.intersection(window)

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """Standard half-open overlap: StartA < EndB and StartB < EndA."""
    return a.start < b.end and b.start < a.end


def contains(a: TimeInterval, instant: datetime) -> bool:
    return a.start <= instant < a.end


def with_buffer(a: TimeInterval, before_minutes: int = 0, after_minutes: int = 0) -> TimeInterval:
    """
    Widen an interval by buffer time on each side.

    Used so that a candidate booking with a 15 minute buffer also clashes
    with anything ending 10 minutes before it starts.
    """
    if before_minutes < 0 or after_minutes < 0:
        raise ValueError("Buffer minutes cannot be negative")
    return TimeInterval(
        start=a.start - timedelta(minutes=before_minutes),
        end=a.end + timedelta(minutes=after_minutes)
    )


def coalesce(intervals: Iterable[TimeInterval]) -> List[TimeInterval]:
    """
    Merge overlapping or adjacent intervals into the minimal equivalent set.

    Sorted by start, then merged whenever next.start <= current.end.
    """
    ordered = sorted(intervals, key=lambda i: (i.start, i.end))
    merged: List[TimeInterval] = []

    for interval in ordered:
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            if interval.end > last.end:
                merged[-1] = TimeInterval(start=last.start, end=interval.end)
        else:
            merged.append(interval)
    return merged
