"""Response-only transforms: business-hours status override and guest redaction.

Applied to copies at the response boundary; stored and cached data are never
touched, so an anonymous read cannot weaken what an authenticated reader sees.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, TypeVar

from .models import RoomStatus
from .schemas import BookingRead, RoomView, RoomWithBookingInfo

NIGHT_REST = "night_rest"

B = TypeVar("B", bound=BookingRead)


def display_status(stored: object, hour: int, opening_hour: int = 8, closing_hour: int = 20) -> str:
    """``night_rest`` outside ``[opening_hour, closing_hour)``, else the normalized stored status."""
    if hour < opening_hour or hour >= closing_hour:
        return NIGHT_REST
    return RoomStatus.normalize(stored).value


def redact_booking(booking: Optional[B], placeholder: str) -> Optional[B]:
    # Timing stays visible to guests; only content and creator are hidden.
    if booking is None:
        return None
    return booking.model_copy(update={"title": placeholder, "comment": None, "created_by": None})


def project_room(
    room: RoomWithBookingInfo,
    hour: int,
    is_guest: bool,
    placeholder: str,
    opening_hour: int = 8,
    closing_hour: int = 20,
) -> RoomView:
    data = room.model_dump()
    data["display_status"] = display_status(room.status, hour, opening_hour, closing_hour)
    view = RoomView.model_validate(data)
    if not is_guest:
        return view
    return view.model_copy(
        update={
            "current_booking": redact_booking(view.current_booking, placeholder),
            "next_booking": redact_booking(view.next_booking, placeholder),
            "all_bookings_today": [redact_booking(b, placeholder) for b in view.all_bookings_today],
        }
    )


def project_rooms(
    rooms: Iterable[RoomWithBookingInfo],
    hour: int,
    is_guest: bool,
    placeholder: str,
    opening_hour: int = 8,
    closing_hour: int = 20,
) -> List[RoomView]:
    return [project_room(room, hour, is_guest, placeholder, opening_hour, closing_hour) for room in rooms]
