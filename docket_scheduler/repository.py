"""
Persistence boundary for the scheduling engine.

The engine reads interval-bearing records through SchedulingRepository and
writes through a single `commit` that is conditioned on version tokens.
Tokens are kept per scope:

    subject:<id>    bumped by any block or booking touching the subject
    resource:<id>   bumped by any booking of the resource
    booking:<id>    bumped when the booking itself changes
    block:<id>      bumped when the block itself changes
    deadline:<id>   bumped when the deadline changes

A caller reads the tokens *before* reading the records, decides, and then
commits with those tokens as expectations. If anyone wrote to one of those
scopes in between, the commit is rejected as a whole.
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Union

from docket_models import (
    AvailabilityBlock,
    BookableResource,
    Booking,
    BookingEvent,
    Deadline,
    TimeInterval,
)
from .errors import ConcurrencyConflictError, NotFoundError

logger = logging.getLogger(__name__)

Record = Union[Booking, AvailabilityBlock, Deadline]


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def subject_scope(subject_id: str) -> str:
    return f"subject:{subject_id}"


def resource_scope(resource_id: str) -> str:
    return f"resource:{resource_id}"


def booking_scope(booking_id: str) -> str:
    return f"booking:{booking_id}"


def block_scope(block_id: str) -> str:
    return f"block:{block_id}"


def deadline_scope(deadline_id: str) -> str:
    return f"deadline:{deadline_id}"


def scopes_for(record: Record) -> List[str]:
    """Every version scope a write of `record` invalidates."""
    if isinstance(record, Booking):
        keys = [booking_scope(record.id)]
        keys.extend(subject_scope(s) for s in record.subject_ids)
        if record.resource_id:
            keys.append(resource_scope(record.resource_id))
        return keys
    if isinstance(record, AvailabilityBlock):
        return [block_scope(record.id), subject_scope(record.subject_id)]
    if isinstance(record, Deadline):
        return [deadline_scope(record.id)]
    raise TypeError(f"Unsupported record type: {type(record).__name__}")


class SchedulingRepository(ABC):
    """Storage operations the engine needs from the host application."""

    # --- Resources (static configuration) ---

    @abstractmethod
    def get_resource(self, resource_id: str) -> BookableResource:
        """Raise NotFoundError for an unknown id."""

    @abstractmethod
    def list_resources(self) -> List[BookableResource]:
        ...

    # --- Interval-bearing records ---

    @abstractmethod
    def blocks_for_subject(self, subject_id: str, window: TimeInterval) -> List[AvailabilityBlock]:
        """
        Blocks of the subject that may intersect the window.
        Recurring blocks are returned whenever their effective range reaches the window.
        """

    @abstractmethod
    def bookings_for_subject(self, subject_id: str, window: TimeInterval) -> List[Booking]:
        """Active bookings with the subject whose occupied interval intersects the window."""

    @abstractmethod
    def bookings_for_resource(self, resource_id: str, window: TimeInterval) -> List[Booking]:
        """Active bookings of the resource whose occupied interval intersects the window."""

    @abstractmethod
    def get_booking(self, booking_id: str) -> Booking:
        ...

    @abstractmethod
    def get_block(self, block_id: str) -> AvailabilityBlock:
        ...

    @abstractmethod
    def get_deadline(self, deadline_id: str) -> Deadline:
        ...

    @abstractmethod
    def list_deadlines(self) -> List[Deadline]:
        ...

    # --- Versioned writes ---

    @abstractmethod
    def scope_versions(self, keys: Iterable[str]) -> Dict[str, int]:
        """Current version token of each scope (0 for a scope never written)."""

    @abstractmethod
    def commit(
        self,
        writes: Sequence[Record],
        expected_versions: Dict[str, int],
        events: Sequence[BookingEvent] = ()
    ) -> List[Record]:
        """
        Atomically: verify every expected token, store every write with its
        version bumped, bump every touched scope, append the events.
        Raise ConcurrencyConflictError and store nothing if any token moved.
        Returns the stored records.
        """

    @abstractmethod
    def events(self) -> List[BookingEvent]:
        ...


class InMemorySchedulingRepository(SchedulingRepository):
    """
    Dictionary-backed store with per-subject and per-resource indices.

    The internal mutex plays the part of the database's own atomic
    conditional write. Engine code never takes it.
    """

    def __init__(
        self,
        resources: Optional[Iterable[BookableResource]] = None,
        blocks: Optional[Iterable[AvailabilityBlock]] = None,
        bookings: Optional[Iterable[Booking]] = None,
        deadlines: Optional[Iterable[Deadline]] = None
    ):
        self._mutex = threading.Lock()

        self._resources: Dict[str, BookableResource] = {}
        self._blocks: Dict[str, AvailabilityBlock] = {}
        self._bookings: Dict[str, Booking] = {}
        self._deadlines: Dict[str, Deadline] = {}
        self._events: List[BookingEvent] = []
        self._versions: Dict[str, int] = defaultdict(int)

        # Indices for subject/resource lookups
        self._subject_blocks: Dict[str, List[str]] = defaultdict(list)
        self._subject_bookings: Dict[str, List[str]] = defaultdict(list)
        self._resource_bookings: Dict[str, List[str]] = defaultdict(list)

        for resource in resources or []:
            self._resources[resource.id] = resource
        for record in [*(blocks or []), *(bookings or []), *(deadlines or [])]:
            self._store(record)
            # A seeded record's own token starts at the version it carries
            self._versions[scopes_for(record)[0]] = record.version

    # --- Seeding (administrative, unversioned) ---

    def add_resource(self, resource: BookableResource) -> None:
        with self._mutex:
            self._resources[resource.id] = resource

    def add_block(self, block: AvailabilityBlock) -> AvailabilityBlock:
        """Store a block outside the booking flow, bumping its subject's version."""
        with self._mutex:
            stored = block.model_copy(update={"version": block.version + 1})
            self._store(stored)
            for key in scopes_for(stored):
                self._versions[key] += 1
            return stored

    # --- Reads ---

    def get_resource(self, resource_id: str) -> BookableResource:
        with self._mutex:
            resource = self._resources.get(resource_id)
        if resource is None:
            raise NotFoundError(f"Resource {resource_id} not found", details={"resource_id": resource_id})
        return resource

    def list_resources(self) -> List[BookableResource]:
        with self._mutex:
            return list(self._resources.values())

    def blocks_for_subject(self, subject_id: str, window: TimeInterval) -> List[AvailabilityBlock]:
        with self._mutex:
            blocks = [self._blocks[i] for i in self._subject_blocks.get(subject_id, [])]
        return [b for b in blocks if _block_may_intersect(b, window)]

    def bookings_for_subject(self, subject_id: str, window: TimeInterval) -> List[Booking]:
        with self._mutex:
            bookings = [self._bookings[i] for i in self._subject_bookings.get(subject_id, [])]
        return _active_in_window(bookings, window)

    def bookings_for_resource(self, resource_id: str, window: TimeInterval) -> List[Booking]:
        with self._mutex:
            bookings = [self._bookings[i] for i in self._resource_bookings.get(resource_id, [])]
        return _active_in_window(bookings, window)

    def get_booking(self, booking_id: str) -> Booking:
        return self._get(self._bookings, booking_id, "Booking")

    def get_block(self, block_id: str) -> AvailabilityBlock:
        return self._get(self._blocks, block_id, "Availability block")

    def get_deadline(self, deadline_id: str) -> Deadline:
        return self._get(self._deadlines, deadline_id, "Deadline")

    def list_deadlines(self) -> List[Deadline]:
        with self._mutex:
            return list(self._deadlines.values())

    def list_bookings(self) -> List[Booking]:
        with self._mutex:
            return list(self._bookings.values())

    def events(self) -> List[BookingEvent]:
        with self._mutex:
            return list(self._events)

    # --- Writes ---

    def scope_versions(self, keys: Iterable[str]) -> Dict[str, int]:
        with self._mutex:
            return {key: self._versions.get(key, 0) for key in keys}

    def commit(
        self,
        writes: Sequence[Record],
        expected_versions: Dict[str, int],
        events: Sequence[BookingEvent] = ()
    ) -> List[Record]:
        with self._mutex:
            stale = [
                key for key, expected in expected_versions.items()
                if self._versions.get(key, 0) != expected
            ]
            if stale:
                logger.debug(f"Rejected commit, stale scopes: {stale}")
                raise ConcurrencyConflictError("Version check failed", stale_keys=stale)

            stored: List[Record] = []
            touched = set()
            for record in writes:
                previous = self._current(record)
                if previous is not None:
                    # Scopes the record is leaving are invalidated too
                    touched.update(scopes_for(previous))
                saved = record.model_copy(update={"version": record.version + 1})
                self._store(saved)
                stored.append(saved)
                touched.update(scopes_for(saved))

            for key in touched:
                self._versions[key] += 1
            self._events.extend(events)
            return stored

    # --- Internals ---

    def _get(self, table: Dict[str, Record], record_id: str, label: str):
        with self._mutex:
            record = table.get(record_id)
        if record is None:
            raise NotFoundError(f"{label} {record_id} not found", details={"id": record_id})
        return record

    def _current(self, record: Record) -> Optional[Record]:
        if isinstance(record, Booking):
            return self._bookings.get(record.id)
        if isinstance(record, AvailabilityBlock):
            return self._blocks.get(record.id)
        if isinstance(record, Deadline):
            return self._deadlines.get(record.id)
        return None

    def _store(self, record: Record) -> None:
        """Insert or replace a record and keep the indices in step. Caller holds the mutex."""
        if isinstance(record, Booking):
            previous = self._bookings.get(record.id)
            if previous is not None:
                for subject_id in previous.subject_ids:
                    self._subject_bookings[subject_id].remove(record.id)
                if previous.resource_id:
                    self._resource_bookings[previous.resource_id].remove(record.id)
            for subject_id in record.subject_ids:
                self._subject_bookings[subject_id].append(record.id)
            if record.resource_id:
                self._resource_bookings[record.resource_id].append(record.id)
            self._bookings[record.id] = record
        elif isinstance(record, AvailabilityBlock):
            previous_block = self._blocks.get(record.id)
            if previous_block is not None:
                self._subject_blocks[previous_block.subject_id].remove(record.id)
            self._subject_blocks[record.subject_id].append(record.id)
            self._blocks[record.id] = record
        elif isinstance(record, Deadline):
            self._deadlines[record.id] = record
        else:
            raise TypeError(f"Unsupported record type: {type(record).__name__}")


def _block_may_intersect(block: AvailabilityBlock, window: TimeInterval) -> bool:
    if block.recurrence is None:
        return block.blocked_interval.overlaps(window)
    pattern = block.recurrence
    reach = window.with_buffer(block.buffer_after_minutes, block.buffer_before_minutes)
    if pattern.effective_from >= reach.end:
        return False
    # Occurrences may start before effective_until and run past it
    return pattern.effective_until is None or pattern.effective_until > reach.start - pattern.occurrence_duration


def _active_in_window(bookings: List[Booking], window: TimeInterval) -> List[Booking]:
    return sorted(
        (b for b in bookings if b.is_active and b.occupied_interval.overlaps(window)),
        key=lambda b: b.interval.start
    )
