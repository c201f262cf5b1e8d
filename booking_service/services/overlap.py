"""Interval overlap engine for room bookings.

Stays are half-open calendar-date intervals ``[check_in, check_out)``: the
check-out day is free for the next guest to check in.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from booking_service.domain.models import ACTIVE_STATUSES, Booking, BookingStatus


def overlaps(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Return True iff ``[a_start, a_end)`` and ``[b_start, b_end)`` intersect.

    Exact boundary touches (``a_end == b_start``) are NOT overlaps.
    """
    return a_start < b_end and b_start < a_end


def is_active(status: BookingStatus | str) -> bool:
    return status in ACTIVE_STATUSES


def find_conflicts(
    check_in: date,
    check_out: date,
    bookings: Iterable[Booking],
    exclude_id: str | None = None,
) -> list[Booking]:
    """Return the active bookings that overlap ``[check_in, check_out)``.

    ``exclude_id`` skips one booking, so an existing booking being edited is
    never reported as conflicting with itself. Room filtering is the caller's
    job.
    """
    return [
        booking
        for booking in bookings
        if (exclude_id is None or booking.id != exclude_id)
        and is_active(booking.status)
        and overlaps(check_in, check_out, booking.check_in, booking.check_out)
    ]
