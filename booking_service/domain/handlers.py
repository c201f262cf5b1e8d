"""Domain-event handlers: booking audit timeline and lifecycle logging."""

from __future__ import annotations

import logging

from booking_service.domain.bus import EventBus
from booking_service.domain.events import (
    BookingCancelled,
    BookingCreated,
    BookingDeleted,
    BookingReplayed,
    BookingUpdated,
)
from booking_service.domain.models import BookingStatus, TimelineEntry, TimelineEntryType
from booking_service.repos.memory import TimelineRepository
from booking_service.services.dates import nights

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the timeline store."""

    def __init__(self, bus: EventBus, timeline_repo: TimelineRepository) -> None:
        self.bus = bus
        self.timeline_repo = timeline_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(BookingCreated, self.on_booking_created)
        self.bus.subscribe(BookingReplayed, self.on_booking_replayed)
        self.bus.subscribe(BookingUpdated, self.on_booking_updated)
        self.bus.subscribe(BookingCancelled, self.on_booking_cancelled)
        self.bus.subscribe(BookingDeleted, self.on_booking_deleted)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_booking_created(self, event: BookingCreated) -> None:
        booking = event.booking
        self.timeline_repo.add(
            TimelineEntry(
                booking_id=booking.id,
                type=TimelineEntryType.CREATED,
                payload={
                    "room_id": booking.room_id,
                    "check_in": booking.check_in.isoformat(),
                    "check_out": booking.check_out.isoformat(),
                    "nights": nights(booking.check_in, booking.check_out),
                    "status": booking.status.value,
                },
            )
        )

    def on_booking_replayed(self, event: BookingReplayed) -> None:
        payload = {}
        if event.idempotency_key is not None:
            payload["idempotency_key"] = event.idempotency_key
        self.timeline_repo.add(
            TimelineEntry(
                booking_id=event.booking.id,
                type=TimelineEntryType.DUPLICATE_SUPPRESSED,
                payload=payload,
            )
        )

    def on_booking_updated(self, event: BookingUpdated) -> None:
        booking = event.booking
        self.timeline_repo.add(
            TimelineEntry(
                booking_id=booking.id,
                type=TimelineEntryType.UPDATED,
                payload={"changed_fields": event.changed_fields},
            )
        )

        # Confirmation gets its own entry; cancellation arrives as BookingCancelled.
        if (
            "status" in event.changed_fields
            and booking.status == BookingStatus.CONFIRMED
        ):
            self.timeline_repo.add(
                TimelineEntry(booking_id=booking.id, type=TimelineEntryType.CONFIRMED)
            )
            logger.info("Booking %s confirmed", booking.id)

    def on_booking_cancelled(self, event: BookingCancelled) -> None:
        booking = event.booking
        self.timeline_repo.add(
            TimelineEntry(
                booking_id=booking.id,
                type=TimelineEntryType.CANCELLED,
                payload={"room_id": booking.room_id},
            )
        )
        logger.info("Booking %s cancelled, room %s released", booking.id, booking.room_id)

    def on_booking_deleted(self, event: BookingDeleted) -> None:
        self.timeline_repo.add(
            TimelineEntry(booking_id=event.booking.id, type=TimelineEntryType.DELETED)
        )
