"""Error kinds raised by the booking conflict guard."""

from __future__ import annotations


class BookingError(Exception):
    """Base class for all booking errors.

    ``kind`` is the stable name exposed to API clients; ``reason`` is the
    human-readable explanation.
    """

    kind = "BookingError"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InvalidDateRange(BookingError):
    kind = "InvalidDateRange"


class RoomUnavailable(BookingError):
    kind = "RoomUnavailable"

    def __init__(self, room_id: str, conflicting_ids: list[str] | None = None) -> None:
        super().__init__("Room not available for the selected dates.")
        self.room_id = room_id
        self.conflicting_ids = conflicting_ids or []


class BookingNotFound(BookingError):
    kind = "NotFound"

    def __init__(self, booking_id: str) -> None:
        super().__init__("Booking not found")
        self.booking_id = booking_id


class InvalidStatusTransition(BookingError):
    kind = "InvalidStatusTransition"


class IdempotencyKeyReused(BookingError):
    kind = "IdempotencyKeyReused"

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Idempotency key {key!r} was already used for a different booking request"
        )
        self.key = key
