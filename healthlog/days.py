"""Calendar-day bucketing.

A record's ``day`` is the local calendar date of the submission truncated to
midnight. Aware timestamps are converted to the server's local zone first and
stored naive, so every bucket key is comparable.
"""
from datetime import date, datetime, time, timedelta
from typing import Tuple, Union

from healthlog.errors import RecordValidationError

DayInput = Union[datetime, date, str]

ONE_DAY = timedelta(days=1)


def _to_local_naive(ts: datetime) -> datetime:
    if ts.tzinfo is not None:
        return ts.astimezone().replace(tzinfo=None)
    return ts


def normalize_day(ts: datetime) -> datetime:
    """Truncate ``ts`` to 00:00:00.000 of its local calendar day."""
    return _to_local_naive(ts).replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(ts: datetime) -> datetime:
    """Return 23:59:59.999 of the local calendar day containing ``ts``."""
    return datetime.combine(normalize_day(ts).date(), time(23, 59, 59, 999000))


def day_interval(ts: datetime) -> Tuple[datetime, datetime]:
    """Half-open ``[day, day + 24h)`` interval used for point lookups."""
    try:
        start = normalize_day(ts)
        return start, start + ONE_DAY
    except OverflowError:
        raise RecordValidationError(f"date out of range: {ts.isoformat()}") from None


def _parse(value: DayInput) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            raise RecordValidationError(f"invalid date: {value!r}") from None
    raise RecordValidationError(f"invalid date: {value!r}")


def parse_day(value: DayInput) -> datetime:
    """Parse a caller supplied date into a datetime.

    Accepts datetimes, dates and ISO-8601 strings. A trailing ``Z`` is read
    as UTC. Days whose lookup interval cannot be represented (the last
    calendar day) are rejected.
    """
    parsed = _parse(value)
    day_interval(parsed)
    return parsed
