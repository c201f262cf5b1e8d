"""Domain models for the booking availability service."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from booking_service.services.dates import to_calendar_date


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})

# Allowed status moves; staying in the same status is always allowed.
STATUS_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}

# Fields whose change can alter room availability.
AVAILABILITY_FIELDS = frozenset({"room_id", "check_in", "check_out"})


class TimelineEntryType(StrEnum):
    CREATED = "created"
    DUPLICATE_SUPPRESSED = "duplicate_suppressed"
    UPDATED = "updated"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    DELETED = "deleted"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Booking(BaseModel):
    id: str | None = None
    room_id: str
    customer_id: str
    check_in: date
    check_out: date
    status: BookingStatus = BookingStatus.PENDING
    guests: int = Field(default=1, gt=0)
    total_price: float = Field(default=0, ge=0)
    hotel_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("check_in", "check_out", mode="before")
    @classmethod
    def _coerce_dates(cls, value: object, info: ValidationInfo) -> date:
        return to_calendar_date(value, info.field_name)

    @model_validator(mode="after")
    def _check_out_after_check_in(self) -> Booking:
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def slot(self) -> tuple[str, date, date]:
        return (self.room_id, self.check_in, self.check_out)


class TimelineEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    booking_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    type: TimelineEntryType
    payload: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    """Payload for a new booking. Date order is checked by the guard."""

    room_id: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)
    check_in: date
    check_out: date
    guests: int = Field(gt=0)
    total_price: float = Field(ge=0)
    hotel_name: str | None = None
    status: BookingStatus | None = None

    @field_validator("check_in", "check_out", mode="before")
    @classmethod
    def _coerce_dates(cls, value: object, info: ValidationInfo) -> date:
        return to_calendar_date(value, info.field_name)

    @field_validator("status")
    @classmethod
    def _initial_status(cls, value: BookingStatus | None) -> BookingStatus | None:
        if value is not None and value not in ACTIVE_STATUSES:
            raise ValueError("new bookings must be pending or confirmed")
        return value

    def request_key(self) -> tuple[str, str, date, date]:
        """Identity of the request for duplicate and idempotency-key checks."""
        return (self.customer_id, self.room_id, self.check_in, self.check_out)


class BookingPatch(BaseModel):
    """Partial update. Only fields explicitly set are applied."""

    room_id: str | None = Field(default=None, min_length=1)
    customer_id: str | None = Field(default=None, min_length=1)
    check_in: date | None = None
    check_out: date | None = None
    guests: int | None = Field(default=None, gt=0)
    total_price: float | None = Field(default=None, ge=0)
    hotel_name: str | None = None
    status: BookingStatus | None = None

    @field_validator("check_in", "check_out", mode="before")
    @classmethod
    def _coerce_dates(cls, value: object, info: ValidationInfo) -> date | None:
        if value is None:
            return None
        return to_calendar_date(value, info.field_name)

    def changes(self) -> dict:
        """Explicitly set fields, ignoring explicit nulls on required fields."""
        data = self.model_dump(exclude_unset=True)
        return {
            k: v for k, v in data.items() if v is not None or k == "hotel_name"
        }


class BookedRange(BaseModel):
    booking_id: str
    start: date
    end: date
    status: BookingStatus


class AvailabilityResponse(BaseModel):
    room_id: str
    check_in: date
    check_out: date
    available: bool
