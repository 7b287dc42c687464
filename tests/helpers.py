"""Calendar constants and interval shorthands shared by the tests."""

from datetime import date, datetime, time, timedelta

from docket_models import TimeInterval

# Friday morning before the July 4th week's Monday
NOW = datetime(2024, 7, 5, 8, 0)
MONDAY = date(2024, 7, 8)
INDEPENDENCE_DAY = date(2024, 7, 4)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))


def span(day: date, start_hour: float, end_hour: float) -> TimeInterval:
    """Interval on `day` from fractional hours, e.g. span(MONDAY, 9, 10.5)."""
    midnight = datetime.combine(day, time())
    return TimeInterval(
        start=midnight + timedelta(hours=start_hour),
        end=midnight + timedelta(hours=end_hour)
    )
