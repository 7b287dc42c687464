"""
Resource data models for the Docket Scheduling Engine.

This module defines the 'Supply' side that is not a person:
1. Bookable resources (conference rooms, deposition rooms, equipment)
2. Their weekly operating hours and booking rules
3. Single open/close working hours used for attorney slot searches
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from datetime import date, datetime, time, timedelta

from .interval import TimeInterval
from .recurrence import Weekday


class ResourceType(str, Enum):
    CONFERENCE_ROOM = "Conference Room"
    MEETING_ROOM = "Meeting Room"
    OFFICE = "Office"
    DEPOSITION_ROOM = "Deposition Room"
    VIDEO_CONFERENCE = "Video Conference Equipment"
    PROJECTOR = "Projector"
    LAPTOP = "Laptop"
    VEHICLE = "Vehicle"
    OTHER = "Other Equipment"


class ResourceStatus(str, Enum):
    AVAILABLE = "Available"
    IN_USE = "In Use"
    MAINTENANCE = "Maintenance"
    UNAVAILABLE = "Unavailable"
    RETIRED = "Retired"


def _window(day: date, open_time: time, close_time: time) -> Optional[TimeInterval]:
    start = datetime.combine(day, open_time)
    end = datetime.combine(day, close_time)
    if end <= start:
        return None
    return TimeInterval(start=start, end=end)


class WorkingHours(BaseModel):
    """The same open/close window every day of the week."""
    start: time = Field(default=time(9, 0), description="Opening time")
    end: time = Field(default=time(17, 0), description="Closing time")

    @model_validator(mode='after')
    def validate_times(self):
        if self.start >= self.end:
            raise ValueError("End time must be strictly after start time")
        return self

    def window_for(self, day: date) -> Optional[TimeInterval]:
        return _window(day, self.start, self.end)


class DayHours(BaseModel):
    """Opening hours for one weekday."""
    open: bool = Field(default=True, description="False = closed all day")
    start: time = Field(default=time(8, 0))
    end: time = Field(default=time(18, 0))

    @model_validator(mode='after')
    def validate_times(self):
        if self.open and self.start >= self.end:
            raise ValueError("End time must be strictly after start time")
        return self


def _default_week() -> Dict[Weekday, DayHours]:
    week = {day: DayHours() for day in Weekday}
    week[Weekday.SATURDAY] = DayHours(open=False)
    week[Weekday.SUNDAY] = DayHours(open=False)
    return week


class OperatingHours(BaseModel):
    """Per-weekday open/close table. Weekends are closed unless configured."""
    days: Dict[Weekday, DayHours] = Field(default_factory=_default_week)

    @field_validator("days", mode="before")
    @classmethod
    def normalize_day_keys(cls, value):
        """Accept 0-6, "0"-"6" (JSON object keys) or day names as keys."""
        if not isinstance(value, dict):
            return value
        normalized = {}
        for key, hours in value.items():
            if isinstance(key, str) and not key.isdigit():
                key = Weekday.from_name(key)
            normalized[Weekday(int(key))] = hours
        return normalized

    def window_for(self, day: date) -> Optional[TimeInterval]:
        hours = self.days.get(Weekday(day.weekday()))
        if hours is None or not hours.open:
            return None
        return _window(day, hours.start, hours.end)


class BookingRules(BaseModel):
    """Limits applied to every booking of a resource."""
    min_duration_minutes: int = Field(default=30, ge=1)
    max_duration_minutes: int = Field(default=480, ge=1)
    min_advance_hours: int = Field(default=1, ge=0, description="Earliest booking lead time")
    max_advance_days: int = Field(default=90, ge=0, description="Furthest booking horizon")
    buffer_minutes: int = Field(default=15, ge=0, description="Gap kept clear around each booking")
    requires_approval: bool = Field(default=False, description="New bookings start as Pending")

    @model_validator(mode='after')
    def validate_durations(self):
        if self.max_duration_minutes < self.min_duration_minutes:
            raise ValueError("max_duration_minutes cannot be below min_duration_minutes")
        return self


class BookableResource(BaseModel):
    """
    Physical or virtual asset with finite capacity.
    Static configuration: changed by administrators, never by the booking flow.
    """
    id: str = Field(description="Unique identifier")
    name: str = Field(min_length=1, description="e.g. 'Deposition Room B'")
    resource_type: ResourceType = Field(default=ResourceType.CONFERENCE_ROOM)
    status: ResourceStatus = Field(default=ResourceStatus.AVAILABLE)
    is_bookable: bool = Field(default=True)

    capacity: int = Field(default=1, ge=1, description="Max concurrent bookings")
    operating_hours: OperatingHours = Field(default_factory=OperatingHours)
    booking_rules: BookingRules = Field(default_factory=BookingRules)

    maintenance_windows: List[TimeInterval] = Field(
        default_factory=list,
        description="Periods of unavailability"
    )
    features: List[str] = Field(default_factory=list)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "res_depo_b",
            "name": "Deposition Room B",
            "resource_type": "Deposition Room",
            "capacity": 1,
            "booking_rules": {"buffer_minutes": 15, "requires_approval": False}
        }
    })

    @property
    def accepts_bookings(self) -> bool:
        return self.is_bookable and self.status not in (ResourceStatus.RETIRED, ResourceStatus.UNAVAILABLE)

    def operating_window(self, day: date) -> Optional[TimeInterval]:
        return self.operating_hours.window_for(day)

    def within_operating_hours(self, candidate: TimeInterval) -> bool:
        """The candidate must start and end inside a single day's opening window."""
        window = self.operating_window(candidate.start.date())
        return window is not None and window.covers(candidate)

    def within_advance_window(self, candidate: TimeInterval, now: datetime) -> bool:
        rules = self.booking_rules
        earliest = now + timedelta(hours=rules.min_advance_hours)
        latest = now + timedelta(days=rules.max_advance_days)
        return earliest <= candidate.start <= latest
