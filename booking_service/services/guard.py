"""Booking conflict guard: the write path for bookings.

Every accepted write keeps this invariant: for any room, no two active
(``pending``/``confirmed``) bookings have intersecting ``[check_in, check_out)``
ranges. The duplicate check, the overlap check and the write all happen while
the repository's per-room lock is held, so two concurrent requests for the
same room cannot both pass the check before either has written.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, NamedTuple

from booking_service.domain.bus import EventBus
from booking_service.domain.errors import (
    BookingNotFound,
    IdempotencyKeyReused,
    InvalidStatusTransition,
    RoomUnavailable,
)
from booking_service.domain.events import (
    BookingCancelled,
    BookingCreated,
    BookingDeleted,
    BookingReplayed,
    BookingUpdated,
)
from booking_service.domain.models import (
    AVAILABILITY_FIELDS,
    STATUS_TRANSITIONS,
    BookedRange,
    Booking,
    BookingCreate,
    BookingPatch,
    BookingStatus,
)
from booking_service.repos.base import (
    BookingRepository,
    DuplicateKeyError,
    IdempotencyKeyTaken,
)
from booking_service.services.dates import validate_date_range
from booking_service.services.overlap import find_conflicts, is_active

logger = logging.getLogger(__name__)


def _listing_order(booking: Booking) -> tuple[date, float]:
    created = booking.created_at.timestamp() if booking.created_at else 0.0
    return (booking.check_in, created)


class CreateResult(NamedTuple):
    booking: Booking
    created: bool  # False when the request was a duplicate or replay


class BookingConflictGuard:
    def __init__(self, repo: BookingRepository, bus: EventBus | None = None) -> None:
        self.repo = repo
        self.bus = bus

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, booking_id: str) -> Booking:
        booking = self.repo.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    def list_bookings(
        self,
        room_id: str | None = None,
        customer_id: str | None = None,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        bookings = self.repo.list_all(room_id=room_id, customer_id=customer_id, status=status)
        return sorted(bookings, key=_listing_order)

    def booked_ranges(self, room_id: str) -> list[BookedRange]:
        """Blocked date ranges of a room, for calendar displays."""
        bookings = sorted(self.repo.list_active_for_room(room_id), key=lambda b: b.check_in)
        return [
            BookedRange(booking_id=b.id, start=b.check_in, end=b.check_out, status=b.status)
            for b in bookings
        ]

    def is_range_available(
        self,
        room_id: str,
        check_in: date | str,
        check_out: date | str,
        exclude_id: str | None = None,
    ) -> bool:
        start, end = validate_date_range(check_in, check_out)
        existing = self.repo.list_active_for_room(room_id, exclude_id=exclude_id)
        return not find_conflicts(start, end, existing, exclude_id=exclude_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self, payload: BookingCreate, idempotency_key: str | None = None
    ) -> CreateResult:
        """Create a booking unless it duplicates or conflicts with an existing one.

        An identical ``(customer_id, room_id, check_in, check_out)`` request, or
        a replayed *idempotency_key*, returns the stored booking with
        ``created=False`` and writes nothing.
        """
        check_in, check_out = validate_date_range(payload.check_in, payload.check_out)
        status = payload.status or BookingStatus.PENDING

        with self.repo.lock_rooms(payload.room_id):
            result = self._create_locked(payload, check_in, check_out, status, idempotency_key)

        booking = result.booking
        if result.created:
            logger.info(
                "Created booking %s for room %s [%s, %s)",
                booking.id,
                booking.room_id,
                booking.check_in,
                booking.check_out,
            )
            self._publish(BookingCreated(booking=booking))
        else:
            logger.info("Suppressed duplicate create for booking %s", booking.id)
            self._publish(BookingReplayed(booking=booking, idempotency_key=idempotency_key))
        return result

    def update(self, booking_id: str, patch: BookingPatch) -> Booking:
        """Apply *patch* to a booking, re-checking availability if needed.

        The overlap check only runs when the patch touches ``room_id``,
        ``check_in`` or ``check_out`` and the booking stays active; the
        booking itself is excluded from it.
        """
        changes = patch.changes()

        while True:
            current = self.get(booking_id)
            room_ids = {current.room_id, changes.get("room_id", current.room_id)}
            with self.repo.lock_rooms(*room_ids):
                current = self.get(booking_id)
                if current.room_id not in room_ids:
                    # Moved to another room while we waited for the lock.
                    continue
                updated = self._apply_update(current, changes)
                break

        changed_fields = sorted(
            field for field in changes if getattr(current, field) != getattr(updated, field)
        )
        logger.info(
            "Updated booking %s (%s)", booking_id, ", ".join(changed_fields) or "no changes"
        )
        self._publish(
            BookingUpdated(booking=updated, previous=current, changed_fields=changed_fields)
        )
        if current.status != updated.status and updated.status == BookingStatus.CANCELLED:
            self._publish(BookingCancelled(booking=updated))
        return updated

    def cancel(self, booking_id: str) -> Booking:
        return self.update(booking_id, BookingPatch(status=BookingStatus.CANCELLED))

    def delete(self, booking_id: str) -> Booking:
        """Hard-delete a booking. Removal only shrinks the active set."""
        current = self.get(booking_id)
        with self.repo.lock_rooms(current.room_id):
            deleted = self.repo.delete(booking_id)
        if deleted is None:
            raise BookingNotFound(booking_id)
        logger.info("Deleted booking %s", booking_id)
        self._publish(BookingDeleted(booking=deleted))
        return deleted

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _create_locked(
        self,
        payload: BookingCreate,
        check_in: date,
        check_out: date,
        status: BookingStatus,
        idempotency_key: str | None,
    ) -> CreateResult:
        if idempotency_key is not None:
            replayed = self._find_replay(idempotency_key, payload)
            if replayed is not None:
                return CreateResult(replayed, False)

        duplicate = self.repo.find_duplicate(
            payload.customer_id, payload.room_id, check_in, check_out
        )
        if duplicate is not None:
            return CreateResult(duplicate, False)

        self._ensure_available(payload.room_id, check_in, check_out)

        booking = Booking(
            room_id=payload.room_id,
            customer_id=payload.customer_id,
            check_in=check_in,
            check_out=check_out,
            status=status,
            guests=payload.guests,
            total_price=payload.total_price,
            hotel_name=payload.hotel_name,
        )
        try:
            return CreateResult(self.repo.add(booking, idempotency_key=idempotency_key), True)
        except DuplicateKeyError as exc:
            # A writer that bypassed the room lock took the slot first.
            winner = self.repo.find_duplicate(*payload.request_key())
            if winner is None:
                raise RoomUnavailable(payload.room_id, [exc.existing_id]) from exc
            return CreateResult(winner, False)
        except IdempotencyKeyTaken as exc:
            # Claimed by a concurrent create for another room.
            replayed = self._find_replay(idempotency_key, payload)
            if replayed is None:
                raise IdempotencyKeyReused(idempotency_key) from exc
            return CreateResult(replayed, False)

    def _apply_update(self, current: Booking, changes: dict[str, Any]) -> Booking:
        room_id = changes.get("room_id", current.room_id)
        check_in, check_out = validate_date_range(
            changes.get("check_in", current.check_in),
            changes.get("check_out", current.check_out),
        )
        status = changes.get("status", current.status)
        self._check_transition(current.status, status)

        if AVAILABILITY_FIELDS & changes.keys() and is_active(status):
            self._ensure_available(room_id, check_in, check_out, exclude_id=current.id)

        try:
            updated = self.repo.update(current.id, changes)
        except DuplicateKeyError as exc:
            raise RoomUnavailable(room_id, [exc.existing_id]) from exc
        if updated is None:
            raise BookingNotFound(current.id)
        return updated

    def _ensure_available(
        self,
        room_id: str,
        check_in: date,
        check_out: date,
        exclude_id: str | None = None,
    ) -> None:
        existing = self.repo.list_active_for_room(room_id, exclude_id=exclude_id)
        conflicts = find_conflicts(check_in, check_out, existing, exclude_id=exclude_id)
        if conflicts:
            conflicting_ids = [c.id for c in conflicts]
            logger.warning(
                "Room %s unavailable for [%s, %s): conflicts with %s",
                room_id,
                check_in,
                check_out,
                conflicting_ids,
            )
            raise RoomUnavailable(room_id, conflicting_ids)

    def _find_replay(self, key: str, payload: BookingCreate) -> Booking | None:
        existing = self.repo.find_by_idempotency_key(key)
        if existing is None:
            return None
        if (existing.customer_id, existing.room_id, existing.check_in, existing.check_out) != (
            payload.request_key()
        ):
            raise IdempotencyKeyReused(key)
        return existing

    @staticmethod
    def _check_transition(current: BookingStatus, new: BookingStatus) -> None:
        if new == current or new in STATUS_TRANSITIONS[current]:
            return
        raise InvalidStatusTransition(
            f"Cannot change booking status from {current.value} to {new.value}"
        )

    def _publish(self, event: Any) -> None:
        if self.bus is not None:
            self.bus.publish(event)
