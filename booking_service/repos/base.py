"""Storage contract the conflict guard depends on."""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date
from typing import Protocol

from booking_service.domain.models import Booking, BookingStatus


class DuplicateKeyError(Exception):
    """An active booking already holds the same ``(room_id, check_in, check_out)``."""

    def __init__(self, slot: tuple[str, date, date], existing_id: str) -> None:
        super().__init__(f"Slot {slot!r} is already held by booking {existing_id}")
        self.slot = slot
        self.existing_id = existing_id


class IdempotencyKeyTaken(Exception):
    """The idempotency key is already mapped to another booking."""

    def __init__(self, key: str, existing_id: str) -> None:
        super().__init__(f"Idempotency key {key!r} is already held by booking {existing_id}")
        self.key = key
        self.existing_id = existing_id


class BookingRepository(Protocol):
    def get(self, booking_id: str) -> Booking | None: ...

    def list_all(
        self,
        room_id: str | None = None,
        customer_id: str | None = None,
        status: BookingStatus | None = None,
    ) -> list[Booking]: ...

    def find_duplicate(
        self, customer_id: str, room_id: str, check_in: date, check_out: date
    ) -> Booking | None: ...

    def list_active_for_room(
        self, room_id: str, exclude_id: str | None = None
    ) -> list[Booking]: ...

    def find_by_idempotency_key(self, key: str) -> Booking | None: ...

    def add(self, booking: Booking, idempotency_key: str | None = None) -> Booking: ...

    def update(self, booking_id: str, changes: dict) -> Booking | None: ...

    def delete(self, booking_id: str) -> Booking | None: ...

    def lock_rooms(self, *room_ids: str) -> AbstractContextManager[None]:
        """Serialise writers touching any of *room_ids* until the block exits."""
        ...
