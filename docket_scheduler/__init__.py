"""
The Docket Scheduling Engine.

Availability, conflict detection, slot finding, bookings and court-rule
deadlines over a pluggable repository.
"""

from .config import SchedulerSettings, get_settings
from .conflicts import Conflict, ConflictDetector, ConflictResult
from .deadlines import DeadlineCalculator, DeadlineService
from .engine import SchedulingEngine
from .errors import (
    ConcurrencyConflictError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from .orchestrator import BookingOrchestrator
from .recurrence import expand
from .registry import AvailabilityRegistry
from .repository import InMemorySchedulingRepository, SchedulingRepository
from .scoring import SlotScorer
from .slots import SlotFinder

__all__ = [
    "SchedulingEngine",
    "SchedulerSettings",
    "get_settings",

    # --- Components ---
    "AvailabilityRegistry",
    "BookingOrchestrator",
    "Conflict",
    "ConflictDetector",
    "ConflictResult",
    "DeadlineCalculator",
    "DeadlineService",
    "SlotFinder",
    "SlotScorer",
    "expand",

    # --- Persistence ---
    "InMemorySchedulingRepository",
    "SchedulingRepository",

    # --- Errors ---
    "ConcurrencyConflictError",
    "ConflictError",
    "InvalidTransitionError",
    "NotFoundError",
    "SchedulingError",
    "ValidationError",
]
