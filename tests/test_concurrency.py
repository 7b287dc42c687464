import threading
from concurrent.futures import ThreadPoolExecutor

from docket_models import BookingStatus
from docket_scheduler import ConflictError, InMemorySchedulingRepository, SchedulingEngine

from .helpers import MONDAY, span


class LockstepRepository(InMemorySchedulingRepository):
    """
    Holds every thread at its first busy-set read until all of them got
    there, so each one has read its version tokens and sees an empty room.
    """

    def __init__(self, parties, **kwargs):
        super().__init__(**kwargs)
        self.barrier = threading.Barrier(parties)
        self._arrived = set()
        self._arrived_lock = threading.Lock()

    def bookings_for_resource(self, resource_id, window):
        seen = super().bookings_for_resource(resource_id, window)
        with self._arrived_lock:
            first_time = threading.get_ident() not in self._arrived
            self._arrived.add(threading.get_ident())
        if first_time:
            self.barrier.wait(timeout=10)
        return seen


def request_from_own_engine(repository, settings, clock, subject):
    """Each caller gets its own engine, as separate service instances would."""
    engine = SchedulingEngine(repository, settings, clock)
    try:
        return engine.request_booking(span(MONDAY, 10, 11), [subject], "room_a", owner=subject)
    except ConflictError as exc:
        return exc


def test_two_simultaneous_requests_exactly_one_wins(resources, settings, clock):
    repository = LockstepRepository(2, resources=resources)

    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [
            pool.submit(request_from_own_engine, repository, settings, clock, subject)
            for subject in ("atty_jones", "atty_patel")
        ]
        outcomes = [f.result(timeout=30) for f in futures]

    confirmed = [o for o in outcomes if not isinstance(o, ConflictError)]
    refused = [o for o in outcomes if isinstance(o, ConflictError)]
    assert len(confirmed) == 1
    assert len(refused) == 1
    assert confirmed[0].status == BookingStatus.CONFIRMED
    assert [b.id for b in repository.list_bookings()] == [confirmed[0].id]


def test_many_contenders_never_exceed_capacity(resources, settings, clock):
    repository = InMemorySchedulingRepository(resources=resources)
    subjects = [f"atty_{i}" for i in range(8)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(
            lambda s: request_from_own_engine(repository, settings, clock, s), subjects
        ))

    winners = [o for o in outcomes if not isinstance(o, ConflictError)]
    assert len(winners) == 1
    active = [b for b in repository.list_bookings() if b.status == BookingStatus.CONFIRMED]
    assert len(active) == 1
