"""
Seeded sample-data generator for the Docket Scheduling Engine.

Builds a small law-firm calendar: attorneys with blocks (some recurring),
rooms and equipment with capacities, a stream of booking requests that
deliberately collide, and a handful of court-rule deadlines.
The same seed always produces the same data.
"""

import logging
import random
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from docket_models import (
    AvailabilityBlock,
    BlockKind,
    BookableResource,
    BookingRules,
    DeadlinePriority,
    DeadlineType,
    Frequency,
    RecurrencePattern,
    ResourceType,
    TimeInterval,
    Weekday,
)

logger = logging.getLogger(__name__)

ATTORNEY_NAMES = [
    "jones", "patel", "garcia", "nguyen", "okafor", "schmidt",
    "rossi", "kim", "haddad", "silva", "murphy", "tanaka",
]

ROOM_CATALOG = [
    ("Conference Room A", ResourceType.CONFERENCE_ROOM, 3),
    ("Conference Room B", ResourceType.CONFERENCE_ROOM, 2),
    ("Deposition Room 1", ResourceType.DEPOSITION_ROOM, 1),
    ("Deposition Room 2", ResourceType.DEPOSITION_ROOM, 1),
    ("Video Kit", ResourceType.VIDEO_CONFERENCE, 2),
    ("Huddle Room", ResourceType.MEETING_ROOM, 1),
]

PURPOSES = [
    "Deposition prep", "Client meeting", "Settlement conference",
    "Witness interview", "Case strategy", "Mediation call",
]

BLOCK_KINDS = [
    BlockKind.IN_COURT, BlockKind.IN_MEETING, BlockKind.BUSY,
    BlockKind.TENTATIVE, BlockKind.TIME_BLOCK, BlockKind.AVAILABLE,
]


class BookingRequest(BaseModel):
    """A request as the CRUD layer would hand it to the engine."""
    candidate: TimeInterval
    subject_ids: List[str] = Field(default_factory=list)
    resource_id: Optional[str] = None
    owner: str = "paralegal"
    purpose: str = ""


class SampleDataGenerator:
    """
    Random but reproducible calendars.

    All times are naive datetimes on the 15-minute grid, weekdays only,
    between 08:00 and 18:00 so resources' default hours can take them.
    """

    def __init__(self, seed: int = 42, start_date: Optional[date] = None, days: int = 10):
        self.seed = seed
        self.rng = random.Random(seed)
        self.start_date = start_date or date(2024, 7, 8)
        self.days = days

    # --- Helpers ---

    def _business_days(self) -> List[date]:
        days = [self.start_date + timedelta(days=i) for i in range(self.days)]
        return [d for d in days if d.weekday() < 5]

    def _random_interval(
        self,
        day: date,
        earliest: time = time(8, 0),
        latest: time = time(18, 0),
        min_minutes: int = 30,
        max_minutes: int = 180
    ) -> TimeInterval:
        length = self.rng.randrange(min_minutes, max_minutes + 1, 15)
        open_minutes = earliest.hour * 60 + earliest.minute
        close_minutes = latest.hour * 60 + latest.minute
        last_start = max(open_minutes, close_minutes - length)
        start_minutes = self.rng.randrange(open_minutes, last_start + 1, 15)
        start = datetime.combine(day, time()) + timedelta(minutes=start_minutes)
        return TimeInterval.of(start, length)

    # --- Generators ---

    def generate_subjects(self, count: int = 6) -> List[str]:
        names = self.rng.sample(ATTORNEY_NAMES, min(count, len(ATTORNEY_NAMES)))
        return [f"atty_{n}" for n in names]

    def generate_resources(self, count: int = 4) -> List[BookableResource]:
        resources = []
        for i, (name, kind, capacity) in enumerate(ROOM_CATALOG[:count]):
            resources.append(BookableResource(
                id=f"res_{i + 1:02d}",
                name=name,
                resource_type=kind,
                capacity=capacity,
                booking_rules=BookingRules(
                    buffer_minutes=self.rng.choice([0, 0, 15]),
                    min_advance_hours=0,
                    max_advance_days=365
                )
            ))
        return resources

    def generate_blocks(self, subjects: List[str], per_subject: int = 3) -> List[AvailabilityBlock]:
        """One-off blocks per subject, plus a weekly court morning for about a third of them."""
        days = self._business_days()
        blocks: List[AvailabilityBlock] = []
        counter = 0

        for subject in subjects:
            for _ in range(per_subject):
                counter += 1
                blocks.append(AvailabilityBlock(
                    id=f"blk_{counter:04d}",
                    subject_id=subject,
                    interval=self._random_interval(self.rng.choice(days), max_minutes=120),
                    kind=self.rng.choice(BLOCK_KINDS),
                    reason="Generated"
                ))

            if self.rng.random() < 0.35:
                counter += 1
                first = days[0]
                start = datetime.combine(first, time(8, 30))
                blocks.append(AvailabilityBlock(
                    id=f"blk_{counter:04d}",
                    subject_id=subject,
                    interval=TimeInterval(start=start, end=start + timedelta(hours=2)),
                    kind=BlockKind.IN_COURT,
                    recurrence=RecurrencePattern(
                        frequency=Frequency.WEEKLY,
                        weekdays=frozenset({Weekday(self.rng.randrange(5))}),
                        effective_from=start
                    ),
                    reason="Standing calendar call"
                ))

        logger.debug(f"Generated {len(blocks)} blocks for {len(subjects)} subjects")
        return blocks

    def generate_requests(
        self,
        subjects: List[str],
        resources: List[BookableResource],
        count: int = 40
    ) -> List[BookingRequest]:
        """
        Requests clustered on few days and hours so they contend for the same
        rooms. Most carry a resource; some are subject-only.
        """
        days = self._business_days()[:3] or [self.start_date]
        requests = []
        for _ in range(count):
            attendees = self.rng.sample(subjects, self.rng.randint(0, min(2, len(subjects))))
            resource = self.rng.choice(resources) if resources and self.rng.random() < 0.8 else None
            if not attendees and resource is None:
                attendees = [self.rng.choice(subjects)]
            requests.append(BookingRequest(
                candidate=self._random_interval(
                    self.rng.choice(days), time(9, 0), time(13, 0), min_minutes=30, max_minutes=120
                ),
                subject_ids=attendees,
                resource_id=resource.id if resource else None,
                owner=self.rng.choice(["paralegal_kim", "assistant_lee", "docketing"]),
                purpose=self.rng.choice(PURPOSES)
            ))
        return requests

    def generate_deadlines(self, subjects: List[str], count: int = 5) -> List[Dict[str, Any]]:
        """Deadline specs (trigger date + business days) for DeadlineService.create_deadline."""
        specs = []
        for i in range(count):
            specs.append({
                "id": f"dl_{i + 1:03d}",
                "title": f"{self.rng.choice(['Answer', 'Reply brief', 'Discovery responses', 'Notice of appeal'])} #{i + 1}",
                "deadline_type": self.rng.choice([
                    DeadlineType.RESPONSE, DeadlineType.FILING, DeadlineType.DISCOVERY, DeadlineType.APPEAL
                ]),
                "priority": self.rng.choice(list(DeadlinePriority)),
                "assigned_to": self.rng.choice(subjects) if subjects else "",
                "trigger_date": self.start_date - timedelta(days=self.rng.randint(0, 20)),
                "business_days": self.rng.choice([2, 5, 10, 14, 21, 30]),
            })
        return specs

    def generate_all(self) -> Dict[str, Any]:
        subjects = self.generate_subjects()
        resources = self.generate_resources()
        data = {
            "subjects": subjects,
            "resources": resources,
            "blocks": self.generate_blocks(subjects),
            "requests": self.generate_requests(subjects, resources),
            "deadlines": self.generate_deadlines(subjects),
        }
        logger.info(
            f"Generated sample data (seed={self.seed}): {len(subjects)} subjects, "
            f"{len(resources)} resources, {len(data['blocks'])} blocks, {len(data['requests'])} requests"
        )
        return data
