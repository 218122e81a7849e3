"""Persistence gateway: the only code that reads or writes rooms and bookings."""
from __future__ import annotations

from typing import Any, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .cache import ROOMS_VIEW_KEY
from .models import Booking, BookingStatus, DataVersion, Room, RoomStatus
from .overlap import overlap_clause


class BookingGateway:
    """Narrow query contract over a SQLAlchemy session.

    Nothing here commits; transaction boundaries belong to the caller.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    # rooms

    def get_room(self, room_id: int) -> Optional[Room]:
        return self.session.get(Room, room_id)

    def lock_room(self, room_id: int) -> Optional[Room]:
        """Load the room row with ``FOR UPDATE`` so concurrent writers on other
        processes queue behind this transaction. SQLite ignores the clause."""
        stmt = select(Room).where(Room.id == room_id).with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def query_rooms(self, status: Optional[RoomStatus] = None, ids: Optional[Iterable[int]] = None) -> List[Room]:
        stmt = select(Room)
        if status is not None:
            stmt = stmt.where(Room.status == status)
        if ids is not None:
            stmt = stmt.where(Room.id.in_(list(ids)))
        stmt = stmt.order_by(Room.name, Room.id)
        return list(self.session.execute(stmt).scalars())

    def rooms_without_conflicts(self, start: str, end: str) -> List[Room]:
        """Active rooms with no confirmed booking overlapping ``[start, end)``, in one query."""
        busy = select(Booking.room_id).where(
            Booking.status == BookingStatus.CONFIRMED,
            overlap_clause(Booking.start_time, Booking.end_time, start, end),
        )
        stmt = (
            select(Room)
            .where(Room.status == RoomStatus.ACTIVE, Room.id.not_in(busy))
            .order_by(Room.name, Room.id)
        )
        return list(self.session.execute(stmt).scalars())

    # bookings

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self.session.get(Booking, booking_id)

    def query_bookings(
        self,
        room_id: Optional[int] = None,
        room_ids: Optional[Iterable[int]] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        exclude_booking_id: Optional[int] = None,
        confirmed_only: bool = True,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[Booking]:
        """Bookings matching the filter.

        ``start``/``end`` select bookings overlapping that window. Results are
        ordered by start time (then id) so the first row is deterministic.
        """
        stmt = select(Booking)
        if confirmed_only:
            stmt = stmt.where(Booking.status == BookingStatus.CONFIRMED)
        if room_id is not None:
            stmt = stmt.where(Booking.room_id == room_id)
        if room_ids is not None:
            stmt = stmt.where(Booking.room_id.in_(list(room_ids)))
        if start is not None and end is not None:
            stmt = stmt.where(overlap_clause(Booking.start_time, Booking.end_time, start, end))
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        if newest_first:
            stmt = stmt.order_by(Booking.start_time.desc(), Booking.id.desc())
        else:
            stmt = stmt.order_by(Booking.start_time, Booking.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def insert_booking(self, **fields: Any) -> Booking:
        booking = Booking(status=BookingStatus.CONFIRMED, **fields)
        self.session.add(booking)
        self.bump_view_version()
        self.session.flush()
        return booking

    def update_booking(self, booking: Booking, fields: dict[str, Any]) -> Booking:
        for key, value in fields.items():
            setattr(booking, key, value)
        self.bump_view_version()
        self.session.flush()
        return booking

    def delete_booking(self, booking: Booking, canceled_by: Optional[int], canceled_at: str, reason: Optional[str]) -> Booking:
        """Soft delete: the row stays, but leaves every overlap and aggregation query."""
        return self.update_booking(
            booking,
            {
                "status": BookingStatus.CANCELED,
                "canceled_by": canceled_by,
                "canceled_at": canceled_at,
                "canceled_reason": reason,
            },
        )

    # cached view versions

    def view_version(self, name: str = ROOMS_VIEW_KEY) -> int:
        stmt = select(DataVersion.version).where(DataVersion.name == name)
        return self.session.execute(stmt).scalar_one_or_none() or 0

    def bump_view_version(self, name: str = ROOMS_VIEW_KEY) -> None:
        """Advance the version other processes compare their cached views against.

        Runs in the caller's transaction, so the new version becomes visible
        together with the data change that caused it.
        """
        stmt = update(DataVersion).where(DataVersion.name == name).values(version=DataVersion.version + 1)
        if self.session.execute(stmt).rowcount == 0:
            self.session.add(DataVersion(name=name, version=1))
            self.session.flush()
