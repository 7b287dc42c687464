"""
Randomized request sequences from the sample-data generator.
After every request no resource may hold more overlapping occupying
bookings than its capacity, and no subject may be double-booked.
"""

import random

import pytest

from docket_generators import SampleDataGenerator
from docket_models import OCCUPYING_STATUSES, BookingStatus, TimeInterval
from docket_scheduler import ConflictError, InMemorySchedulingRepository, SchedulingEngine
from docket_scheduler.registry import concurrency_segments

from .helpers import NOW


def assert_capacity_respected(repository):
    bookings = repository.list_bookings()
    for resource in repository.list_resources():
        occupying = [
            b.occupied_interval for b in bookings
            if b.resource_id == resource.id and b.status in OCCUPYING_STATUSES
        ]
        peak = max((depth for _, depth in concurrency_segments(occupying)), default=0)
        assert peak <= resource.capacity, f"{resource.id} holds {peak} > {resource.capacity}"


def assert_no_double_booked_subject(repository):
    by_subject = {}
    for booking in repository.list_bookings():
        if not booking.is_active:
            continue
        for subject in booking.subject_ids:
            by_subject.setdefault(subject, []).append(booking.occupied_interval)
    for subject, intervals in by_subject.items():
        peak = max((depth for _, depth in concurrency_segments(intervals)), default=0)
        assert peak <= 1, f"{subject} is double-booked"


@pytest.mark.parametrize("seed", [1, 7, 42, 2024, 31337])
def test_random_request_sequences_respect_capacity(seed, settings):
    data = SampleDataGenerator(seed=seed).generate_all()
    repository = InMemorySchedulingRepository(resources=data["resources"], blocks=data["blocks"])
    engine = SchedulingEngine(repository, settings, clock=lambda: NOW)
    rng = random.Random(seed)

    granted = 0
    for request in data["requests"]:
        try:
            booking = engine.request_booking(
                request.candidate, request.subject_ids, request.resource_id,
                owner=request.owner, purpose=request.purpose
            )
            granted += 1
        except ConflictError:
            continue

        # Shake things up: some bookings get cancelled, started or moved
        roll = rng.random()
        if roll < 0.15:
            engine.cancel_booking(booking.id, request.owner)
        elif roll < 0.25 and booking.status == BookingStatus.CONFIRMED:
            engine.start_booking(booking.id, request.owner)
        elif roll < 0.35 and booking.status == BookingStatus.CONFIRMED:
            shifted = TimeInterval.of(
                request.candidate.start.replace(hour=14, minute=0), request.candidate.duration_minutes
            )
            try:
                engine.reschedule(booking.id, shifted, request.owner)
            except ConflictError:
                pass

        assert_capacity_respected(repository)
        assert_no_double_booked_subject(repository)

    assert granted > 0


def test_generator_is_deterministic():
    first = SampleDataGenerator(seed=99).generate_all()
    second = SampleDataGenerator(seed=99).generate_all()
    assert first["requests"] == second["requests"]
    assert first["blocks"] == second["blocks"]
