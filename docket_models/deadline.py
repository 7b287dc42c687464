"""
Deadline data models for the Docket Scheduling Engine.

A Deadline is a legal due date (filing, response, appeal...) computed from
a trigger date. Its status is never stored: it is derived from the due
date, the completion/cancellation flags and the current time on every read.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator
from datetime import date, datetime, timedelta


class DeadlineType(str, Enum):
    FILING = "Filing Deadline"
    RESPONSE = "Response Deadline"
    DISCOVERY = "Discovery Deadline"
    MOTION = "Motion Deadline"
    APPEAL = "Appeal Deadline"
    STATUTE_OF_LIMITATIONS = "Statute of Limitations"
    COURT_ORDERED = "Court-Ordered"
    INTERNAL = "Internal Deadline"
    CUSTOM = "Custom"


class DeadlineStatus(str, Enum):
    UPCOMING = "Upcoming"
    TODAY = "Today"
    OVERDUE = "Overdue"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    EXTENDED = "Extended"


class DeadlinePriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class CalculationMethod(str, Enum):
    MANUAL = "Manual"
    COURT_RULES = "Court Rules"
    STATUTE = "Statute"
    CUSTOM_FORMULA = "Custom Formula"


def derive_status(
    due_date: date,
    completed: bool,
    cancelled: bool,
    now: datetime,
    extended: bool = False
) -> DeadlineStatus:
    """
    Pure status derivation.

    Completed and Cancelled are terminal. Otherwise the due date decides:
    past -> Overdue, today -> Today, future -> Upcoming (or Extended when
    an extension is in force).
    """
    if completed:
        return DeadlineStatus.COMPLETED
    if cancelled:
        return DeadlineStatus.CANCELLED

    today = now.date()
    if due_date < today:
        return DeadlineStatus.OVERDUE
    if due_date == today:
        return DeadlineStatus.TODAY
    if extended:
        return DeadlineStatus.EXTENDED
    return DeadlineStatus.UPCOMING


class Reminder(BaseModel):
    days_before_due: int = Field(ge=0)
    channel: str = Field(default="Email", description="Email, SMS, Push or In-App")
    recipients: List[str] = Field(default_factory=list)


class Extension(BaseModel):
    """One granted extension, kept in order."""
    previous_due_date: date
    new_due_date: date
    reason: str
    granted_by: str
    granted_at: datetime


class Deadline(BaseModel):
    """
    A computed legal due date.
    `blocked_by` and `related_deadlines` are recorded, not resolved.
    """

    # --- Core Identity ---
    id: str = Field(description="Unique identifier")
    title: str = Field(min_length=1)
    deadline_type: DeadlineType = Field(default=DeadlineType.CUSTOM)
    priority: DeadlinePriority = Field(default=DeadlinePriority.HIGH)
    assigned_to: str = Field(default="")
    case_id: Optional[str] = Field(default=None, description="Opaque case reference")

    # --- Calculation Basis ---
    trigger_date: Optional[date] = Field(default=None)
    business_days: Optional[int] = Field(default=None, ge=0)
    calculation_method: CalculationMethod = Field(default=CalculationMethod.MANUAL)
    court_rule: str = Field(default="")
    due_date: date = Field(description="Current due date")

    # --- Lifecycle Flags (status is derived from these) ---
    completed: bool = False
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    cancelled: bool = False
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None

    # --- Extensions ---
    extended: bool = False
    original_due_date: Optional[date] = Field(default=None, description="Due date before the first extension")
    extensions: List[Extension] = Field(default_factory=list)

    # --- Dependencies & Reminders ---
    reminders: List[Reminder] = Field(default_factory=list)
    related_deadlines: List[str] = Field(default_factory=list)
    blocked_by: List[str] = Field(default_factory=list)

    version: int = Field(default=0, ge=0, description="Optimistic concurrency token")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "dl_0001",
            "title": "Answer to complaint",
            "deadline_type": "Response Deadline",
            "trigger_date": "2024-07-03",
            "business_days": 2,
            "calculation_method": "Court Rules",
            "due_date": "2024-07-08",
            "priority": "Critical"
        }
    })

    @model_validator(mode='after')
    def validate_flags(self):
        if self.completed and self.cancelled:
            raise ValueError("A deadline cannot be both completed and cancelled")
        if self.original_due_date is not None and not self.extended:
            raise ValueError("original_due_date is only kept once an extension is granted")
        return self

    def status_at(self, now: datetime) -> DeadlineStatus:
        return derive_status(self.due_date, self.completed, self.cancelled, now, self.extended)

    def days_until_due(self, now: datetime) -> int:
        return (self.due_date - now.date()).days

    def is_overdue(self, now: datetime) -> bool:
        return self.status_at(now) == DeadlineStatus.OVERDUE

    def reminder_dates(self) -> List[date]:
        """Dates on which reminders fall due, earliest first."""
        return sorted(self.due_date - timedelta(days=r.days_before_due) for r in self.reminders)
