"""FastAPI application: entry point for the booking availability service."""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from booking_service.config import configure_logging, settings
from booking_service.domain.bus import EventBus
from booking_service.domain.errors import (
    BookingError,
    BookingNotFound,
    IdempotencyKeyReused,
    InvalidDateRange,
    InvalidStatusTransition,
    RoomUnavailable,
)
from booking_service.domain.handlers import HandlerRegistry
from booking_service.domain.models import (
    AvailabilityResponse,
    BookedRange,
    Booking,
    BookingCreate,
    BookingPatch,
    BookingStatus,
    TimelineEntry,
)
from booking_service.repos.memory import TimelineRepository, create_booking_repository
from booking_service.services.dates import validate_date_range
from booking_service.services.guard import BookingConflictGuard

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
booking_repo = create_booking_repository(seed=settings.SEED_DEMO_DATA)
timeline_repo = TimelineRepository()
handler_registry = HandlerRegistry(bus=event_bus, timeline_repo=timeline_repo)
guard = BookingConflictGuard(booking_repo, bus=event_bus)
logger.info(
    "%s ready with %d stored booking(s)", settings.APP_NAME, len(booking_repo.list_all())
)

_started_at = time.monotonic()

_ERROR_STATUS = {
    InvalidDateRange: 400,
    InvalidStatusTransition: 400,
    BookingNotFound: 404,
    RoomUnavailable: 409,
    IdempotencyKeyReused: 422,
}


# ── Error mapping ─────────────────────────────────────────────────────


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = _ERROR_STATUS.get(type(exc), 400)
    body = {"error": exc.kind, "detail": exc.reason}
    if isinstance(exc, RoomUnavailable):
        body["conflicting_booking_ids"] = exc.conflicting_ids
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {"path": list(err.get("loc", [])), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400, content={"error": "ValidationError", "details": details}
    )


# ── Routes ────────────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "uptime": round(time.monotonic() - _started_at, 3)}


@app.get("/bookings", response_model=list[Booking])
def list_bookings(
    room_id: str | None = None,
    customer_id: str | None = None,
    status: BookingStatus | None = None,
) -> list[Booking]:
    """Return stored bookings, optionally filtered."""
    return guard.list_bookings(room_id=room_id, customer_id=customer_id, status=status)


@app.get("/bookings/{booking_id}", response_model=Booking)
def get_booking(booking_id: str) -> Booking:
    return guard.get(booking_id)


@app.post("/bookings", response_model=Booking, status_code=201)
def create_booking(
    payload: BookingCreate,
    response: Response,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
) -> Booking:
    """Create a booking.

    Resubmitting an identical request (or reusing an ``Idempotency-Key``)
    returns the original booking with an ``Idempotent-Replayed: true`` header.
    """
    result = guard.create(payload, idempotency_key=idempotency_key)
    if not result.created:
        response.headers["Idempotent-Replayed"] = "true"
    return result.booking


@app.put("/bookings/{booking_id}", response_model=Booking)
@app.patch("/bookings/{booking_id}", response_model=Booking)
def update_booking(booking_id: str, patch: BookingPatch) -> Booking:
    """Apply a partial update, re-checking availability when dates or room change."""
    return guard.update(booking_id, patch)


@app.post("/bookings/{booking_id}/cancel", response_model=Booking)
def cancel_booking(booking_id: str) -> Booking:
    return guard.cancel(booking_id)


@app.delete("/bookings/{booking_id}")
def delete_booking(booking_id: str) -> dict:
    guard.delete(booking_id)
    return {"message": "Booking deleted successfully"}


@app.get("/bookings/{booking_id}/timeline", response_model=list[TimelineEntry])
def get_booking_timeline(booking_id: str) -> list[TimelineEntry]:
    """Return the audit timeline for a booking, including deleted ones."""
    entries = timeline_repo.list_for_booking(booking_id)
    if not entries:
        # Raises NotFound for unknown ids; known bookings may have no history yet.
        guard.get(booking_id)
    return entries


@app.get("/rooms/{room_id}/booked-ranges", response_model=list[BookedRange])
def get_booked_ranges(room_id: str) -> list[BookedRange]:
    """Return the date ranges blocked by active bookings on a room."""
    return guard.booked_ranges(room_id)


@app.get("/rooms/{room_id}/availability", response_model=AvailabilityResponse)
def get_room_availability(
    room_id: str,
    check_in: str,
    check_out: str,
    exclude_id: str | None = None,
) -> AvailabilityResponse:
    """Check whether ``[check_in, check_out)`` is free on a room."""
    start, end = validate_date_range(check_in, check_out)
    available = guard.is_range_available(room_id, start, end, exclude_id=exclude_id)
    return AvailabilityResponse(
        room_id=room_id, check_in=start, check_out=end, available=available
    )
