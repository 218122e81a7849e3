"""Read-side projections: per-room booking info, free rooms and slot lookups.

Nothing in here takes a lock or writes; results may lag writers by at most
the cache TTL.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from .cache import ROOMS_VIEW_KEY, RoomsViewCache
from .conflicts import find_conflict
from .exceptions import NotFoundError, ValidationError
from .gateway import BookingGateway
from .models import Booking, Room
from .schemas import BookingRead, RoomRead, RoomWithBookingInfo
from .timeutils import combine_date_time, day_window, minutes_between, normalize_wall_clock, now_wall_clock


def summarize_room(room: Room, bookings: List[Booking], as_of: str) -> RoomWithBookingInfo:
    """Booking info for one room; ``bookings`` are that room's confirmed bookings for the day."""
    ordered = sorted(bookings, key=lambda booking: (booking.start_time, booking.id))
    current = next((b for b in ordered if b.start_time <= as_of < b.end_time), None)
    upcoming = next((b for b in ordered if b.start_time > as_of), None)
    return RoomWithBookingInfo(
        **RoomRead.model_validate(room).model_dump(),
        current_booking=BookingRead.model_validate(current) if current else None,
        next_booking=BookingRead.model_validate(upcoming) if upcoming else None,
        total_bookings_today=len(ordered),
        total_booked_minutes_today=sum(minutes_between(b.start_time, b.end_time) for b in ordered),
        all_bookings_today=[BookingRead.model_validate(b) for b in ordered],
    )


class AvailabilityAggregator:
    def __init__(
        self,
        session: Session,
        cache: Optional[RoomsViewCache[List[RoomWithBookingInfo]]] = None,
        clock: Callable[[], str] = now_wall_clock,
    ) -> None:
        self.gateway = BookingGateway(session)
        self.cache = cache
        self.clock = clock

    def rooms_with_booking_info(self, as_of: Optional[str] = None) -> List[RoomWithBookingInfo]:
        """Every room with its current, next and full-day bookings.

        Only "now" views go through the cache; an explicit ``as_of`` is always
        computed fresh.
        """
        if as_of is not None:
            return self._compute(normalize_wall_clock(as_of))
        if self.cache is None:
            return self._compute(self.clock())
        return self.cache.get_or_compute(
            ROOMS_VIEW_KEY,
            lambda: self._compute(self.clock()),
            version=self.gateway.view_version(ROOMS_VIEW_KEY),
        )

    def room_with_booking_info(self, room_id: int, as_of: Optional[str] = None) -> RoomWithBookingInfo:
        for room in self.rooms_with_booking_info(as_of):
            if room.id == room_id:
                return room
        raise NotFoundError(f"Room {room_id} not found")

    def _compute(self, as_of: str) -> List[RoomWithBookingInfo]:
        rooms = self.gateway.query_rooms()
        if not rooms:
            return []
        day_start, day_end = day_window(as_of)
        by_room: Dict[int, List[Booking]] = defaultdict(list)
        for booking in self.gateway.query_bookings(room_ids=[room.id for room in rooms], start=day_start, end=day_end):
            by_room[booking.room_id].append(booking)
        return [summarize_room(room, by_room[room.id], as_of) for room in rooms]

    def available_rooms(self, date: str, start_time: str, end_time: str) -> List[Room]:
        """Active rooms with no confirmed booking overlapping the slot."""
        start, end = self._slot(date, start_time, end_time)
        return self.gateway.rooms_without_conflicts(start, end)

    def check_slot(self, room_id: int, date: str, start_time: str, end_time: str) -> Optional[Booking]:
        """The booking occupying the slot in ``room_id``, or ``None`` when it is free."""
        start, end = self._slot(date, start_time, end_time)
        if self.gateway.get_room(room_id) is None:
            raise NotFoundError(f"Room {room_id} not found")
        return find_conflict(self.gateway, room_id, start, end)

    def room_bookings(self, room_id: int, day: Optional[str] = None) -> List[Booking]:
        if self.gateway.get_room(room_id) is None:
            raise NotFoundError(f"Room {room_id} not found")
        if day is None:
            return self.gateway.query_bookings(room_id=room_id)
        day_start, day_end = day_window(combine_date_time(day, "00:00"))
        return self.gateway.query_bookings(room_id=room_id, start=day_start, end=day_end)

    @staticmethod
    def _slot(date: str, start_time: str, end_time: str) -> tuple[str, str]:
        start = combine_date_time(date, start_time)
        end = combine_date_time(date, end_time)
        if end <= start:
            raise ValidationError("End time must be after start time")
        return start, end
