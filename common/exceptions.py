"""Domain errors raised by the booking engine.

Raised in the engine modules and translated into HTTP responses by
``common.error_handlers``.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .models import Booking


class BookingEngineError(Exception):
    """Base exception for all booking engine errors."""

    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def payload(self) -> dict[str, Any]:
        return {"detail": self.detail}


class ValidationError(BookingEngineError):
    """Malformed or missing input: bad title, comment too long, inverted interval."""


class RoomUnavailableError(BookingEngineError):
    """Room is missing or its stored status does not admit bookings."""

    status_code = 409

    def __init__(self, detail: str, room_id: Optional[int] = None, missing: bool = False) -> None:
        super().__init__(detail)
        self.room_id = room_id
        if missing:
            self.status_code = 404


class ConflictError(BookingEngineError):
    """A confirmed booking already occupies the requested interval.

    The colliding booking's fields are copied when the error is built: the
    session that loaded it is rolled back and closed before any handler
    renders the response.
    """

    status_code = 409

    def __init__(self, booking_id: int, title: str, start_time: str, end_time: str) -> None:
        super().__init__(f"Room already booked from {start_time} to {end_time}")
        self.booking_id = booking_id
        self.title = title
        self.start_time = start_time
        self.end_time = end_time

    @classmethod
    def for_booking(cls, booking: "Booking") -> "ConflictError":
        return cls(booking.id, booking.title, booking.start_time, booking.end_time)

    def redacted(self, placeholder: str) -> "ConflictError":
        """Same conflict with the colliding booking's title hidden."""
        return ConflictError(self.booking_id, placeholder, self.start_time, self.end_time)

    def payload(self) -> dict[str, Any]:
        return {
            "detail": self.detail,
            "conflict": {
                "title": self.title,
                "start_time": self.start_time,
                "end_time": self.end_time,
            },
        }


class NotFoundError(BookingEngineError):
    status_code = 404


class AuthorizationError(BookingEngineError):
    """Caller is neither the booking owner nor an admin."""

    status_code = 403
