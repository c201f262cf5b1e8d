"""In-memory repositories for bookings and their timeline."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from datetime import date, datetime, timedelta, timezone

from booking_service.domain.models import (
    Booking,
    BookingStatus,
    TimelineEntry,
)
from booking_service.repos.base import DuplicateKeyError, IdempotencyKeyTaken


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _RoomLock:
    """Per-room write lock with a count of writers holding or awaiting it."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class InMemoryBookingRepository:
    """Dict-backed store for Booking instances, keyed by id.

    Active bookings are indexed by ``(room_id, check_in, check_out)``; the
    index acts as a unique constraint. Stored records are never handed out
    directly, callers always receive copies.
    """

    def __init__(self) -> None:
        self._store: dict[str, Booking] = {}
        self._slots: dict[tuple[str, date, date], str] = {}
        self._idempotency_keys: dict[str, str] = {}
        self._lock = threading.RLock()
        self._room_locks: dict[str, _RoomLock] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, booking_id: str) -> Booking | None:
        with self._lock:
            booking = self._store.get(booking_id)
            return booking.model_copy() if booking else None

    def list_all(
        self,
        room_id: str | None = None,
        customer_id: str | None = None,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        with self._lock:
            return [
                b.model_copy()
                for b in self._store.values()
                if (room_id is None or b.room_id == room_id)
                and (customer_id is None or b.customer_id == customer_id)
                and (status is None or b.status == status)
            ]

    def find_duplicate(
        self, customer_id: str, room_id: str, check_in: date, check_out: date
    ) -> Booking | None:
        """Booking with exactly these fields, whatever its status.

        An active match wins over cancelled ones; among cancelled matches the
        most recently created is returned.
        """
        slot = (room_id, check_in, check_out)
        with self._lock:
            matches = [
                b
                for b in self._store.values()
                if b.customer_id == customer_id and b.slot == slot
            ]
            if not matches:
                return None
            return max(matches, key=lambda b: (b.is_active, b.created_at)).model_copy()

    def list_active_for_room(
        self, room_id: str, exclude_id: str | None = None
    ) -> list[Booking]:
        with self._lock:
            return [
                b.model_copy()
                for b in self._store.values()
                if b.room_id == room_id and b.is_active and b.id != exclude_id
            ]

    def find_by_idempotency_key(self, key: str) -> Booking | None:
        with self._lock:
            booking_id = self._idempotency_keys.get(key)
            if booking_id is None:
                return None
            return self.get(booking_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, booking: Booking, idempotency_key: str | None = None) -> Booking:
        """Store a copy of *booking* under a fresh id and return it.

        Raises IdempotencyKeyTaken if *idempotency_key* already belongs to a
        booking, and DuplicateKeyError if the active slot is held. Nothing is
        written in either case.
        """
        now = _utcnow()
        stored = booking.model_copy(
            update={"id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
        )
        with self._lock:
            if idempotency_key is not None:
                holder = self._idempotency_keys.get(idempotency_key)
                if holder is not None:
                    raise IdempotencyKeyTaken(idempotency_key, holder)
            if stored.is_active:
                self._claim_slot(stored)
            self._store[stored.id] = stored
            if idempotency_key is not None:
                self._idempotency_keys[idempotency_key] = stored.id
            return stored.model_copy()

    def update(self, booking_id: str, changes: dict) -> Booking | None:
        """Apply *changes* to a booking, re-validating the merged record."""
        with self._lock:
            current = self._store.get(booking_id)
            if current is None:
                return None
            merged = Booking.model_validate(
                {**current.model_dump(), **changes, "updated_at": _utcnow()}
            )
            if current.is_active:
                self._slots.pop(current.slot, None)
            try:
                if merged.is_active:
                    self._claim_slot(merged)
            except DuplicateKeyError:
                if current.is_active:
                    self._slots[current.slot] = current.id
                raise
            self._store[booking_id] = merged
            return merged.model_copy()

    def delete(self, booking_id: str) -> Booking | None:
        with self._lock:
            booking = self._store.pop(booking_id, None)
            if booking is None:
                return None
            if self._slots.get(booking.slot) == booking_id:
                del self._slots[booking.slot]
            for key in [k for k, v in self._idempotency_keys.items() if v == booking_id]:
                del self._idempotency_keys[key]
            return booking

    @contextmanager
    def lock_rooms(self, *room_ids: str) -> Iterator[None]:
        """Hold the write lock of every room in *room_ids*.

        Locks are taken in sorted order so two writers moving bookings
        between the same pair of rooms cannot deadlock. A room's lock is
        dropped once no writer holds or waits for it.
        """
        keys = sorted(set(room_ids))
        with self._lock:
            entries = [self._room_locks.setdefault(k, _RoomLock()) for k in keys]
            for entry in entries:
                entry.users += 1
        try:
            with ExitStack() as stack:
                for entry in entries:
                    stack.enter_context(entry.lock)
                yield
        finally:
            with self._lock:
                for key, entry in zip(keys, entries):
                    entry.users -= 1
                    if entry.users == 0:
                        del self._room_locks[key]

    def held_room_locks(self) -> list[str]:
        """Rooms whose write lock is currently held or awaited."""
        with self._lock:
            return sorted(self._room_locks)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._slots.clear()
            self._idempotency_keys.clear()

    def _claim_slot(self, booking: Booking) -> None:
        holder = self._slots.get(booking.slot)
        if holder is not None and holder != booking.id:
            raise DuplicateKeyError(booking.slot, holder)
        self._slots[booking.slot] = booking.id


class TimelineRepository:
    """List-backed store for TimelineEntry instances."""

    def __init__(self) -> None:
        self._entries: list[TimelineEntry] = []
        self._lock = threading.Lock()

    def add(self, entry: TimelineEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def list_for_booking(self, booking_id: str) -> list[TimelineEntry]:
        with self._lock:
            entries = [e for e in self._entries if e.booking_id == booking_id]
        return sorted(entries, key=lambda e: e.timestamp)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# ---------------------------------------------------------------------------
# Seed data – a few near-future bookings useful for availability testing
# ---------------------------------------------------------------------------


def _seed_bookings(repo: InMemoryBookingRepository) -> None:
    today = _utcnow().date()

    repo.add(
        Booking(
            room_id="101",
            customer_id="demo-customer-1",
            hotel_name="Seaside Hotel",
            check_in=today + timedelta(days=2),
            check_out=today + timedelta(days=5),
            guests=2,
            total_price=3600,
            status=BookingStatus.CONFIRMED,
        )
    )
    repo.add(
        Booking(
            room_id="101",
            customer_id="demo-customer-2",
            hotel_name="Seaside Hotel",
            check_in=today + timedelta(days=5),
            check_out=today + timedelta(days=7),
            guests=1,
            total_price=2400,
        )
    )
    repo.add(
        Booking(
            room_id="202",
            customer_id="demo-customer-1",
            hotel_name="Seaside Hotel",
            check_in=today + timedelta(days=1),
            check_out=today + timedelta(days=3),
            guests=3,
            total_price=5000,
            status=BookingStatus.CANCELLED,
        )
    )


def create_booking_repository(seed: bool = True) -> InMemoryBookingRepository:
    """Return an InMemoryBookingRepository, pre-loaded with sample data by default."""
    repo = InMemoryBookingRepository()
    if seed:
        _seed_bookings(repo)
    return repo
