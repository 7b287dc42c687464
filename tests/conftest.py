"""Shared fixtures: a frozen clock, a holiday calendar and an in-memory store."""

import pytest

from docket_models import BookableResource, BookingRules, ResourceType
from docket_scheduler import InMemorySchedulingRepository, SchedulerSettings, SchedulingEngine

from .helpers import INDEPENDENCE_DAY, NOW


@pytest.fixture
def settings():
    return SchedulerSettings(_env_file=None, holidays=[INDEPENDENCE_DAY])


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def resources():
    no_buffer = BookingRules(buffer_minutes=0)
    return [
        BookableResource(id="room_a", name="Conference Room A", capacity=1, booking_rules=no_buffer),
        BookableResource(id="room_big", name="Board Room", capacity=2, booking_rules=no_buffer),
        BookableResource(
            id="depo_1", name="Deposition Room 1",
            resource_type=ResourceType.DEPOSITION_ROOM, capacity=1
        ),
        BookableResource(
            id="room_vip", name="Partners Room", capacity=1,
            booking_rules=BookingRules(buffer_minutes=0, requires_approval=True)
        ),
    ]


@pytest.fixture
def repository(resources):
    return InMemorySchedulingRepository(resources=resources)


@pytest.fixture
def engine(repository, settings, clock):
    return SchedulingEngine(repository, settings, clock)
