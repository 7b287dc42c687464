from datetime import date, datetime, time, timedelta

import pydantic
import pytest

from docket_models import AvailabilityBlock, Frequency, RecurrencePattern, TimeInterval, Weekday
from docket_scheduler import ValidationError, expand

ANCHOR = datetime(2024, 7, 1, 9, 0)  # Monday


def pattern(frequency, **kwargs):
    kwargs.setdefault("effective_from", ANCHOR)
    kwargs.setdefault("start_time", time(9, 0))
    kwargs.setdefault("end_time", time(10, 0))
    return RecurrencePattern(frequency=frequency, **kwargs)


def test_daily_occurrences_inside_horizon():
    occurrences = list(expand(pattern(Frequency.DAILY), datetime(2024, 7, 1), datetime(2024, 7, 4)))
    assert [o.start for o in occurrences] == [
        datetime(2024, 7, 1, 9), datetime(2024, 7, 2, 9), datetime(2024, 7, 3, 9)
    ]
    assert all(o.duration == timedelta(hours=1) for o in occurrences)


def test_weekly_only_on_configured_weekdays():
    weekly = pattern(Frequency.WEEKLY, weekdays=frozenset({Weekday.TUESDAY, Weekday.THURSDAY}))
    occurrences = list(expand(weekly, datetime(2024, 7, 1), datetime(2024, 7, 15)))
    assert [o.start.date() for o in occurrences] == [
        date(2024, 7, 2), date(2024, 7, 4), date(2024, 7, 9), date(2024, 7, 11)
    ]


def test_every_other_week_counts_from_anchor_not_horizon():
    biweekly = pattern(Frequency.WEEKLY, interval=2, weekdays=frozenset({Weekday.MONDAY}))
    # Horizon starts in an "off" week; the next hit is two weeks after the anchor
    occurrences = list(expand(biweekly, datetime(2024, 7, 8), datetime(2024, 7, 30)))
    assert [o.start.date() for o in occurrences] == [date(2024, 7, 15), date(2024, 7, 29)]


def test_monthly_clamps_to_month_end():
    monthly = pattern(Frequency.MONTHLY, effective_from=datetime(2024, 1, 31, 9, 0))
    occurrences = list(expand(monthly, datetime(2024, 1, 1), datetime(2024, 4, 1)))
    assert [o.start.date() for o in occurrences] == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]


def test_stops_at_effective_until():
    bounded = pattern(Frequency.DAILY, effective_until=datetime(2024, 7, 3, 0, 0))
    occurrences = list(expand(bounded, datetime(2024, 7, 1), datetime(2024, 8, 1)))
    assert len(occurrences) == 2


def test_nothing_before_effective_from():
    occurrences = list(expand(pattern(Frequency.DAILY), datetime(2024, 6, 1), datetime(2024, 7, 2)))
    assert [o.start for o in occurrences] == [datetime(2024, 7, 1, 9)]


def test_occurrence_straddling_horizon_start_is_included():
    occurrences = list(expand(pattern(Frequency.DAILY), datetime(2024, 7, 2, 9, 30), datetime(2024, 7, 2, 12)))
    assert occurrences == [TimeInterval(start=datetime(2024, 7, 2, 9), end=datetime(2024, 7, 2, 10))]


def test_overnight_occurrence_rolls_into_next_day():
    night = pattern(Frequency.DAILY, start_time=time(22, 0), end_time=time(2, 0))
    first = next(expand(night, datetime(2024, 7, 1), datetime(2024, 7, 2)))
    assert first.end == datetime(2024, 7, 2, 2, 0)


def test_expansion_is_restartable():
    weekly = pattern(Frequency.WEEKLY, weekdays=frozenset({Weekday.MONDAY, Weekday.FRIDAY}))
    args = (weekly, datetime(2024, 7, 10), datetime(2024, 10, 1))
    assert list(expand(*args)) == list(expand(*args))


def test_open_ended_pattern_is_capped():
    occurrences = list(expand(pattern(Frequency.DAILY), ANCHOR, datetime(2100, 1, 1), max_occurrences=25))
    assert len(occurrences) == 25


def test_expansion_is_lazy():
    generator = expand(pattern(Frequency.DAILY), ANCHOR, datetime(9999, 1, 1))
    assert next(generator).start == ANCHOR


def test_unresolved_pattern_is_rejected():
    bare = RecurrencePattern(frequency=Frequency.DAILY, effective_from=ANCHOR)
    with pytest.raises(ValidationError):
        list(expand(bare, ANCHOR, ANCHOR + timedelta(days=2)))


class TestPatternValidation:
    def test_weekly_needs_weekdays(self):
        with pytest.raises(pydantic.ValidationError):
            RecurrencePattern(frequency=Frequency.WEEKLY, effective_from=ANCHOR)

    def test_daily_cannot_have_weekdays(self):
        with pytest.raises(pydantic.ValidationError):
            RecurrencePattern(frequency=Frequency.DAILY, weekdays=frozenset({Weekday.MONDAY}), effective_from=ANCHOR)

    def test_zero_interval_is_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            RecurrencePattern(frequency=Frequency.DAILY, interval=0, effective_from=ANCHOR)

    def test_block_resolves_times_from_its_interval(self):
        block = AvailabilityBlock(
            id="blk_1",
            subject_id="atty_jones",
            interval=TimeInterval(start=datetime(2024, 7, 2, 8, 30), end=datetime(2024, 7, 2, 11, 0)),
            recurrence=RecurrencePattern(
                frequency=Frequency.WEEKLY,
                weekdays=frozenset({Weekday.TUESDAY}),
                effective_from=datetime(2024, 7, 2, 8, 30)
            )
        )
        assert block.recurrence.start_time == time(8, 30)
        assert block.recurrence.end_time == time(11, 0)
