from datetime import date, datetime

import pytest

from docket_models import CalculationMethod, Deadline, DeadlinePriority, DeadlineStatus, derive_status
from docket_scheduler import (
    ConflictError,
    DeadlineCalculator,
    DeadlineService,
    InMemorySchedulingRepository,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from docket_scheduler import deadlines
from docket_scheduler.deadlines import calculate

from .helpers import INDEPENDENCE_DAY, NOW

FRIDAY = date(2024, 7, 5)


class TestCalculate:
    def test_friday_plus_one_is_monday(self):
        assert calculate(FRIDAY, 1, holidays=set()) == date(2024, 7, 8)

    def test_holiday_and_weekend_are_skipped(self):
        assert calculate(date(2024, 7, 3), 2, holidays={INDEPENDENCE_DAY}) == date(2024, 7, 8)

    def test_zero_days_returns_trigger(self):
        assert calculate(FRIDAY, 0) == FRIDAY

    def test_weekend_trigger_counts_from_next_business_day(self):
        assert calculate(date(2024, 7, 6), 1) == date(2024, 7, 8)

    def test_accepts_iso_strings_and_datetimes(self):
        assert calculate("2024-07-05", 1) == date(2024, 7, 8)
        assert calculate(datetime(2024, 7, 5, 17, 30), 1) == date(2024, 7, 8)

    def test_calendar_day_counting_still_skips_holidays(self):
        assert calculate(date(2024, 7, 3), 2, {INDEPENDENCE_DAY}, skip_weekends=False) == date(2024, 7, 6)

    def test_negative_days_rejected(self):
        with pytest.raises(ValidationError):
            calculate(FRIDAY, -1)

    def test_garbage_date_rejected(self):
        with pytest.raises(ValidationError):
            calculate("not-a-date", 1)

    def test_calculator_uses_configured_calendar(self, settings):
        calculator = DeadlineCalculator(settings)
        assert calculator.calculate(date(2024, 7, 3), 2) == date(2024, 7, 8)
        # An explicit calendar replaces the configured one
        assert calculator.calculate(date(2024, 7, 3), 2, holidays=[]) == date(2024, 7, 5)
        assert not calculator.is_business_day(INDEPENDENCE_DAY)


class TestDeriveStatus:
    @pytest.mark.parametrize("due, completed, cancelled, extended, expected", [
        (date(2024, 7, 10), False, False, False, DeadlineStatus.UPCOMING),
        (date(2024, 7, 5), False, False, False, DeadlineStatus.TODAY),
        (date(2024, 7, 1), False, False, False, DeadlineStatus.OVERDUE),
        (date(2024, 7, 1), True, False, False, DeadlineStatus.COMPLETED),
        (date(2024, 7, 1), False, True, False, DeadlineStatus.CANCELLED),
        (date(2024, 7, 10), False, False, True, DeadlineStatus.EXTENDED),
        (date(2024, 7, 1), False, False, True, DeadlineStatus.OVERDUE),
    ])
    def test_status_table(self, due, completed, cancelled, extended, expected):
        assert derive_status(due, completed, cancelled, NOW, extended) == expected

    def test_status_moves_with_the_clock(self):
        deadline = Deadline(id="dl", title="Answer", due_date=date(2024, 7, 8))
        assert deadline.status_at(NOW) == DeadlineStatus.UPCOMING
        assert deadline.status_at(datetime(2024, 7, 8, 9)) == DeadlineStatus.TODAY
        assert deadline.status_at(datetime(2024, 7, 9, 9)) == DeadlineStatus.OVERDUE
        assert deadline.days_until_due(NOW) == 3


class TestExtend:
    def test_second_extension_keeps_first_original_due_date(self):
        deadline = Deadline(id="dl", title="Reply", due_date=date(2024, 7, 10))
        once = deadlines.extend(deadline, date(2024, 7, 17), "Stipulation", "judge_roe", NOW)
        twice = deadlines.extend(once, date(2024, 7, 24), "Second stipulation", "judge_roe", NOW)

        assert once.original_due_date == date(2024, 7, 10)
        assert twice.original_due_date == date(2024, 7, 10)
        assert twice.due_date == date(2024, 7, 24)
        assert [e.previous_due_date for e in twice.extensions] == [date(2024, 7, 10), date(2024, 7, 17)]
        assert twice.status_at(NOW) == DeadlineStatus.EXTENDED

    def test_earlier_date_is_allowed(self):
        deadline = Deadline(id="dl", title="Reply", due_date=date(2024, 7, 10))
        shortened = deadlines.extend(deadline, date(2024, 7, 9), "Court order", "judge_roe", NOW)
        assert shortened.due_date == date(2024, 7, 9)

    def test_invalid_new_date_rejected(self):
        deadline = Deadline(id="dl", title="Reply", due_date=date(2024, 7, 10))
        with pytest.raises(ValidationError):
            deadlines.extend(deadline, "2024-13-45", "typo", "judge_roe", NOW)


@pytest.fixture
def service(settings, clock):
    return DeadlineService(InMemorySchedulingRepository(), DeadlineCalculator(settings), clock)


class TestDeadlineService:
    def test_create_from_court_rule(self, service):
        deadline = service.create_deadline("Answer", trigger_date=date(2024, 7, 3), business_days=2)
        assert deadline.due_date == date(2024, 7, 8)
        assert deadline.calculation_method == CalculationMethod.COURT_RULES
        assert deadline.version == 1

    def test_create_requires_due_or_trigger(self, service):
        with pytest.raises(ValidationError):
            service.create_deadline("Answer", trigger_date=date(2024, 7, 3))

    def test_duplicate_id_is_a_conflict(self, service):
        service.create_deadline("Answer", due_date=date(2024, 7, 8), id="dl_1")
        with pytest.raises(ConflictError):
            service.create_deadline("Answer again", due_date=date(2024, 7, 9), id="dl_1")

    def test_extend_twice_through_service(self, service):
        created = service.create_deadline("Reply", due_date=date(2024, 7, 10))
        service.extend_deadline(created.id, date(2024, 7, 17), "Stipulation", "judge_roe")
        extended = service.extend_deadline(created.id, "2024-07-24", "Again", "judge_roe")
        assert extended.original_due_date == date(2024, 7, 10)
        assert extended.version == 3
        assert service.status_of(created.id) == DeadlineStatus.EXTENDED

    def test_extend_unknown_deadline(self, service):
        with pytest.raises(NotFoundError):
            service.extend_deadline("missing", date(2024, 7, 17), "x", "judge_roe")

    def test_complete_is_idempotent_and_blocks_cancel(self, service):
        created = service.create_deadline("Reply", due_date=date(2024, 7, 10))
        first = service.complete_deadline(created.id, "atty_jones")
        second = service.complete_deadline(created.id, "atty_jones")
        assert first.version == second.version
        with pytest.raises(InvalidTransitionError):
            service.cancel_deadline(created.id, "atty_jones")

    def test_upcoming_and_overdue(self, service):
        service.create_deadline("Late", due_date=date(2024, 7, 1), id="late")
        service.create_deadline("Soon", due_date=date(2024, 7, 9), id="soon", priority=DeadlinePriority.LOW)
        service.create_deadline("Soon critical", due_date=date(2024, 7, 9), id="crit",
                                priority=DeadlinePriority.CRITICAL)
        service.create_deadline("Far", due_date=date(2024, 9, 30), id="far")
        done = service.create_deadline("Done", due_date=date(2024, 7, 8), id="done")
        service.complete_deadline(done.id, "atty_jones")

        assert [d.id for d in service.find_upcoming(days=30)] == ["crit", "soon"]
        assert [d.id for d in service.find_overdue()] == ["late"]
