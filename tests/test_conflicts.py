from datetime import date

import pytest

from docket_models import (
    AvailabilityBlock,
    BlockKind,
    BookableResource,
    Booking,
    BookingRules,
    BookingStatus,
    ResourceStatus,
    ResourceType,
)
from docket_scheduler import (
    AvailabilityRegistry,
    ConflictDetector,
    InMemorySchedulingRepository,
    NotFoundError,
    SchedulerSettings,
)

from .helpers import MONDAY, NOW, span


def build_detector(blocks=(), bookings=(), resources=(), **settings_overrides):
    repository = InMemorySchedulingRepository(resources=resources, blocks=blocks, bookings=bookings)
    registry = AvailabilityRegistry(repository, SchedulerSettings(_env_file=None, **settings_overrides), lambda: NOW)
    return ConflictDetector(registry)


@pytest.fixture
def detector():
    return build_detector(
        blocks=[
            AvailabilityBlock(id="b1", subject_id="atty_jones", interval=span(MONDAY, 10, 11), kind=BlockKind.IN_COURT),
        ],
        bookings=[
            Booking(id="bkg_1", interval=span(MONDAY, 14, 15), subject_ids=["atty_patel"], owner="kim"),
        ]
    )


class TestSubjectConflicts:
    def test_free_subjects_are_available(self, detector):
        result = detector.check_conflicts(span(MONDAY, 12, 13), {"atty_jones", "atty_patel"})
        assert result.available
        assert result.conflicts == []

    def test_overlap_reports_subject_and_interval(self, detector):
        result = detector.check_conflicts(span(MONDAY, 10.5, 12), {"atty_jones", "atty_patel"})
        assert not result.available
        assert [(c.subject_id, c.interval) for c in result.conflicts] == [("atty_jones", span(MONDAY, 10, 11))]

    def test_touching_busy_interval_is_not_a_conflict(self, detector):
        assert detector.check_conflicts(span(MONDAY, 11, 12), ["atty_jones"]).available

    def test_buffer_turns_adjacency_into_conflict(self, detector):
        result = detector.check_conflicts(span(MONDAY, 11, 12), ["atty_jones"], buffer_minutes=15)
        assert not result.available

    def test_excluded_booking_does_not_conflict_with_itself(self, detector):
        candidate = span(MONDAY, 14, 15)
        assert not detector.check_conflicts(candidate, ["atty_patel"]).available
        assert detector.check_conflicts(candidate, ["atty_patel"], exclude_booking_id="bkg_1").available

    def test_find_available_subjects_keeps_input_order(self, detector):
        free = detector.find_available_subjects(span(MONDAY, 10, 11), ["atty_patel", "atty_jones", "atty_kim"])
        assert free == ["atty_patel", "atty_kim"]


class TestResourceConflicts:
    def test_capacity_counts_concurrent_bookings(self):
        room = BookableResource(id="room", name="Room", capacity=2, booking_rules=BookingRules(buffer_minutes=0))
        bookings = [
            Booking(id="a", interval=span(MONDAY, 9, 10), resource_id="room", owner="kim"),
            Booking(id="b", interval=span(MONDAY, 10, 11), resource_id="room", owner="kim"),
        ]
        detector = build_detector(bookings=bookings, resources=[room])

        # The two existing bookings never overlap each other, so one seat is left
        result = detector.check_resource(span(MONDAY, 9, 11), "room")
        assert result.available
        assert (result.capacity_used, result.capacity_available) == (1, 1)

    def test_full_resource_reports_capacity_conflict(self):
        room = BookableResource(id="room", name="Room", capacity=1, booking_rules=BookingRules(buffer_minutes=0))
        detector = build_detector(
            bookings=[Booking(id="a", interval=span(MONDAY, 9, 10), resource_id="room", owner="kim")],
            resources=[room]
        )
        result = detector.check_resource(span(MONDAY, 9.5, 10.5), "room")
        assert [c.constraint_type for c in result.conflicts] == ["Capacity"]
        assert result.conflicts[0].booking_id == "a"
        assert result.capacity_available == 0

    def test_resource_buffer_applies_between_bookings(self):
        room = BookableResource(id="room", name="Room", capacity=1, booking_rules=BookingRules(buffer_minutes=15))
        detector = build_detector(
            bookings=[Booking(id="a", interval=span(MONDAY, 9, 10), resource_id="room", owner="kim")],
            resources=[room]
        )
        assert not detector.check_resource(span(MONDAY, 10, 11), "room").available
        assert detector.check_resource(span(MONDAY, 10.25, 11), "room").available

    @pytest.mark.parametrize("count_pending, available", [(True, False), (False, True)])
    def test_pending_bookings_hold_capacity_by_policy(self, count_pending, available):
        room = BookableResource(id="room", name="Room", capacity=1, booking_rules=BookingRules(buffer_minutes=0))
        detector = build_detector(
            bookings=[Booking(id="a", interval=span(MONDAY, 9, 10), resource_id="room", owner="kim",
                              status=BookingStatus.PENDING)],
            resources=[room],
            count_pending_toward_capacity=count_pending
        )
        assert detector.check_resource(span(MONDAY, 9, 10), "room").available is available

    def test_operating_hours_and_maintenance(self):
        room = BookableResource(
            id="room", name="Room", booking_rules=BookingRules(buffer_minutes=0),
            maintenance_windows=[span(MONDAY, 12, 13)]
        )
        detector = build_detector(resources=[room])

        saturday = date(2024, 7, 13)
        types = [c.constraint_type for c in detector.check_resource(span(saturday, 10, 11), "room").conflicts]
        assert types == ["OperatingHours"]

        types = [c.constraint_type for c in detector.check_resource(span(MONDAY, 17, 19), "room").conflicts]
        assert types == ["OperatingHours"]

        types = [c.constraint_type for c in detector.check_resource(span(MONDAY, 12.5, 14), "room").conflicts]
        assert types == ["Maintenance"]

    def test_retired_resource_is_unavailable(self):
        room = BookableResource(id="room", name="Room", status=ResourceStatus.RETIRED)
        detector = build_detector(resources=[room])
        result = detector.check_resource(span(MONDAY, 9, 10), "room")
        assert "Unavailable" in [c.constraint_type for c in result.conflicts]

    def test_unknown_resource(self):
        with pytest.raises(NotFoundError):
            build_detector().check_resource(span(MONDAY, 9, 10), "nope")

    def test_find_available_resources_filters_type_and_capacity(self):
        rooms = [
            BookableResource(id="small", name="Small", capacity=1),
            BookableResource(id="large", name="Large", capacity=8),
            BookableResource(id="depo", name="Depo", resource_type=ResourceType.DEPOSITION_ROOM, capacity=4),
        ]
        detector = build_detector(resources=rooms)
        found = detector.find_available_resources(span(MONDAY, 9, 10), ResourceType.CONFERENCE_ROOM, min_capacity=2)
        assert [r.id for r in found] == ["large"]


def test_combined_check_merges_subject_and_resource_results():
    room = BookableResource(id="room", name="Room", capacity=1, booking_rules=BookingRules(buffer_minutes=0))
    detector = build_detector(
        blocks=[AvailabilityBlock(id="b1", subject_id="atty_jones", interval=span(MONDAY, 9, 10))],
        bookings=[Booking(id="a", interval=span(MONDAY, 9, 10), resource_id="room", owner="kim")],
        resources=[room]
    )
    result = detector.check(span(MONDAY, 9, 10), ["atty_jones"], "room")
    assert sorted(c.constraint_type for c in result.conflicts) == ["Capacity", "Overlap"]
    assert result.to_dict()["available"] is False
