"""Tests for calendar-date coercion."""

from datetime import date, datetime, timedelta, timezone

import pytest

from booking_service.domain.errors import InvalidDateRange
from booking_service.services.dates import nights, to_calendar_date, validate_date_range


def test_plain_iso_date_string():
    assert to_calendar_date("2025-06-01") == date(2025, 6, 1)


def test_timestamp_string_keeps_its_own_calendar_day():
    # Late-evening local time must not roll over to the next UTC day.
    assert to_calendar_date("2025-06-01T23:30:00-05:00") == date(2025, 6, 1)
    assert to_calendar_date("2025-06-01T00:00:00Z") == date(2025, 6, 1)


def test_datetime_time_of_day_is_dropped():
    tz = timezone(timedelta(hours=2))
    assert to_calendar_date(datetime(2025, 3, 30, 1, 15, tzinfo=tz)) == date(2025, 3, 30)
    assert to_calendar_date(datetime(2025, 3, 30, 23, 59)) == date(2025, 3, 30)


def test_date_passes_through():
    assert to_calendar_date(date(2025, 6, 1)) == date(2025, 6, 1)


@pytest.mark.parametrize("value", ["", "not-a-date", "2025-02-30", None, 20250601])
def test_unparseable_values_raise_invalid_date_range(value):
    with pytest.raises(InvalidDateRange):
        to_calendar_date(value)


def test_validate_date_range_requires_check_out_after_check_in():
    assert validate_date_range("2025-06-01", "2025-06-02") == (
        date(2025, 6, 1),
        date(2025, 6, 2),
    )
    with pytest.raises(InvalidDateRange, match="check_out must be after check_in"):
        validate_date_range("2025-06-10", "2025-06-10")
    with pytest.raises(InvalidDateRange):
        validate_date_range("2025-06-10", "2025-06-09")


def test_validate_date_range_names_the_bad_field():
    with pytest.raises(InvalidDateRange, match="check_out"):
        validate_date_range("2025-06-10", "soon")


def test_nights_across_dst_change():
    # Europe/US spring-forward weekends still count whole nights.
    assert nights(date(2025, 3, 29), date(2025, 3, 31)) == 2
    assert nights(date(2025, 3, 8), date(2025, 3, 10)) == 2
