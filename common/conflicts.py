"""Room gate and time-overlap conflict lookup."""
from __future__ import annotations

import logging
from typing import Optional

from .exceptions import RoomUnavailableError
from .gateway import BookingGateway
from .models import Booking, Room

logger = logging.getLogger(__name__)


def ensure_room_bookable(gateway: BookingGateway, room_id: int, lock: bool = False) -> Room:
    """Return the room if its stored status admits bookings.

    Runs before any overlap query: a missing room or one in maintenance or
    inactive status is rejected here with its own error.
    """
    room = gateway.lock_room(room_id) if lock else gateway.get_room(room_id)
    if room is None:
        raise RoomUnavailableError(f"Room {room_id} not found", room_id=room_id, missing=True)
    if not room.status.bookable:
        raise RoomUnavailableError(
            f"Room {room.name!r} is not available for booking (status: {room.status.value})",
            room_id=room_id,
        )
    return room


def find_conflict(
    gateway: BookingGateway,
    room_id: int,
    start: str,
    end: str,
    exclude_booking_id: Optional[int] = None,
) -> Optional[Booking]:
    """Earliest-starting confirmed booking of ``room_id`` overlapping ``[start, end)``."""
    rows = gateway.query_bookings(
        room_id=room_id,
        start=start,
        end=end,
        exclude_booking_id=exclude_booking_id,
        limit=1,
    )
    if not rows:
        return None
    conflict = rows[0]
    logger.warning(
        "Booking conflict in room %s: requested %s..%s collides with booking %s (%s..%s)",
        room_id,
        start,
        end,
        conflict.id,
        conflict.start_time,
        conflict.end_time,
    )
    return conflict
