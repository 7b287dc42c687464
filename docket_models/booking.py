"""
Booking data models for the Docket Scheduling Engine.

This module defines the 'Output' of the engine:
committed reservations of subjects and resources, their status history,
and the outbox events written alongside every change.
"""

from typing import Any, Dict, List, Optional
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict, model_validator
from datetime import datetime

from .interval import TimeInterval


class BookingStatus(str, Enum):
    """Status of a booking."""
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No Show"
    RESCHEDULED = "Rescheduled"


# Bookings in these states hold the interval against other requests.
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS})
# The states the resource capacity invariant is stated over.
OCCUPYING_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS})


class StatusChange(BaseModel):
    """One entry of a booking's status history."""
    from_status: Optional[BookingStatus] = None
    to_status: BookingStatus
    changed_by: str
    changed_at: datetime
    reason: str = ""


class Booking(BaseModel):
    """
    A reservation of one or more subjects and, optionally, one resource.
    Case and event references travel in `metadata` and are never interpreted.
    """

    # --- Core Scheduling Data ---
    id: str = Field(description="Unique identifier")
    interval: TimeInterval = Field(description="The reserved time range")
    subject_ids: List[str] = Field(default_factory=list, description="Attorneys attending")
    resource_id: Optional[str] = Field(default=None, description="Room or equipment reserved")
    owner: str = Field(min_length=1, description="Who booked it")
    status: BookingStatus = Field(default=BookingStatus.CONFIRMED)
    purpose: str = Field(default="")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Opaque references (case, event)")

    # Setup and cleanup time occupy the resource but are not part of the meeting itself
    setup_minutes: int = Field(default=0, ge=0)
    cleanup_minutes: int = Field(default=0, ge=0)

    # --- Lifecycle ---
    status_history: List[StatusChange] = Field(default_factory=list)
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    rescheduled_from: Optional[str] = Field(default=None, description="Booking this one replaced")
    rescheduled_to: Optional[str] = Field(default=None, description="Booking that replaced this one")

    created_at: Optional[datetime] = None
    version: int = Field(default=0, ge=0, description="Optimistic concurrency token")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "bkg_0001",
            "interval": {"start": "2024-07-08T10:00:00", "end": "2024-07-08T12:00:00"},
            "subject_ids": ["atty_jones", "atty_patel"],
            "resource_id": "res_depo_b",
            "owner": "paralegal_kim",
            "status": "Confirmed",
            "purpose": "Deposition of J. Doe",
            "metadata": {"case_number": "CV-2024-0113"}
        }
    })

    @model_validator(mode='after')
    def validate_participants(self):
        if not self.subject_ids and not self.resource_id:
            raise ValueError("A booking needs at least one subject or a resource")
        return self

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def occupied_interval(self) -> TimeInterval:
        """Helper to get the full block including setup and cleanup."""
        return self.interval.with_buffer(self.setup_minutes, self.cleanup_minutes)


class BookingEventType(str, Enum):
    CREATED = "Created"
    CONFIRMED = "Confirmed"
    STARTED = "Started"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "NoShow"
    RESCHEDULED = "Rescheduled"


class BookingEvent(BaseModel):
    """Outbox record handed to the persistence/notification collaborators."""
    booking_id: str
    event_type: BookingEventType
    occurred_at: datetime
    actor: str
    payload: Dict[str, Any] = Field(default_factory=dict)
