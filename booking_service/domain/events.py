"""Domain events emitted after the conflict guard accepts a write."""

from __future__ import annotations

from pydantic import BaseModel

from booking_service.domain.models import Booking


class BookingCreated(BaseModel):
    """Fired when a new Booking is persisted."""

    booking: Booking


class BookingReplayed(BaseModel):
    """Fired when a create request matched an existing booking and was suppressed."""

    booking: Booking
    idempotency_key: str | None = None


class BookingUpdated(BaseModel):
    """Fired after a patch is persisted; ``changed_fields`` lists what differs."""

    booking: Booking
    previous: Booking
    changed_fields: list[str]


class BookingCancelled(BaseModel):
    """Fired when a booking moves to ``cancelled`` and leaves the conflict set."""

    booking: Booking


class BookingDeleted(BaseModel):
    booking: Booking
