"""Calendar-date coercion for check-in / check-out values.

Bookings work at day granularity. Every value that reaches the overlap engine
goes through :func:`to_calendar_date` first, so comparisons never involve a
time-of-day component and cannot be shifted by daylight-saving offsets.
"""

from __future__ import annotations

from datetime import date, datetime

from dateutil.parser import isoparse

from booking_service.domain.errors import InvalidDateRange


def to_calendar_date(value: object, field: str = "date") -> date:
    """Return the calendar date for *value*.

    Accepts a ``date``, a ``datetime`` (its own calendar date is kept, the
    time and offset are dropped) or an ISO-8601 string. Raises
    ``InvalidDateRange`` for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return isoparse(value.strip()).date()
        except (ValueError, OverflowError):
            pass
    raise InvalidDateRange(f"Invalid {field}: {value!r}")


def validate_date_range(check_in: object, check_out: object) -> tuple[date, date]:
    """Coerce both ends and require ``check_out`` strictly after ``check_in``."""
    start = to_calendar_date(check_in, "check_in")
    end = to_calendar_date(check_out, "check_out")
    if end <= start:
        raise InvalidDateRange("check_out must be after check_in")
    return start, end


def nights(check_in: date, check_out: date) -> int:
    return (check_out - check_in).days
