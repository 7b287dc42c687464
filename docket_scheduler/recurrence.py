"""
Recurrence Expander.

Turns a RecurrencePattern into concrete occurrence intervals inside a
horizon. Expansion is lazy (a generator), always finite, and anchored on
the pattern's own effective_from, never on "today": the same arguments
produce the same sequence on every call.
"""

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Iterator

from docket_models import Frequency, RecurrencePattern, TimeInterval
from .errors import ValidationError

logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 10_000


def expand(
    pattern: RecurrencePattern,
    horizon_start: datetime,
    horizon_end: datetime,
    max_occurrences: int = MAX_OCCURRENCES
) -> Iterator[TimeInterval]:
    """
    Yield every occurrence of `pattern` that overlaps [horizon_start, horizon_end).

    Generation stops at min(effective_until, horizon_end), or once
    `max_occurrences` intervals have been produced.
    """
    if not pattern.is_resolved:
        raise ValidationError("Recurrence pattern has no occurrence start/end time")
    if horizon_end <= horizon_start:
        return

    stop = horizon_end
    if pattern.effective_until is not None and pattern.effective_until < stop:
        stop = pattern.effective_until

    duration = pattern.occurrence_duration
    # An occurrence starting this early can still reach into the horizon
    seek = horizon_start - duration
    tz = pattern.effective_from.tzinfo

    emitted = 0
    for day in _occurrence_dates(pattern, seek.date()):
        occ_start = datetime.combine(day, pattern.start_time, tzinfo=tz)
        if occ_start >= stop:
            break
        if occ_start < pattern.effective_from:
            continue

        occ = TimeInterval(start=occ_start, end=occ_start + duration)
        if occ.end <= horizon_start:
            continue

        yield occ
        emitted += 1
        if emitted >= max_occurrences:
            logger.warning(
                f"Recurrence expansion capped at {max_occurrences} occurrences "
                f"({pattern.frequency.value}, every {pattern.interval})"
            )
            return


def _occurrence_dates(pattern: RecurrencePattern, seek: date) -> Iterator[date]:
    """
    Candidate occurrence dates in ascending order, starting near `seek`.

    The step index is computed from the anchor arithmetically, so skipping
    ahead to the horizon gives exactly the dates a walk from the anchor would.
    """
    anchor = pattern.effective_from.date()
    step = pattern.interval

    if pattern.frequency == Frequency.DAILY:
        k = max(0, (seek - anchor).days // step)
        while True:
            yield anchor + timedelta(days=k * step)
            k += 1

    elif pattern.frequency == Frequency.WEEKLY:
        # Weeks are counted from the Monday of the anchor's week
        week_zero = anchor - timedelta(days=anchor.weekday())
        weekdays = sorted(int(d) for d in pattern.weekdays)
        n = max(0, ((seek - week_zero).days // 7) // step)
        while True:
            week_start = week_zero + timedelta(weeks=n * step)
            for weekday in weekdays:
                yield week_start + timedelta(days=weekday)
            n += 1

    elif pattern.frequency == Frequency.MONTHLY:
        months_since = (seek.year - anchor.year) * 12 + (seek.month - anchor.month)
        n = max(0, months_since // step)
        while True:
            yield _add_months(anchor, n * step)
            n += 1

    else:
        raise ValidationError(f"Unsupported frequency: {pattern.frequency}")


def _add_months(anchor: date, months: int) -> date:
    """Same day-of-month `months` later, clamped to the month's last day (Jan 31 -> Feb 29)."""
    year, month_index = divmod(anchor.month - 1 + months, 12)
    year += anchor.year
    month = month_index + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor.day, last_day))
