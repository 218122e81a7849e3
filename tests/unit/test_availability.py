"""Unit tests for the availability aggregator."""
import pytest

from common.availability import AvailabilityAggregator
from common.bookings import BookingLifecycle
from common.cache import RoomsViewCache
from common.database import SessionLocal
from common.exceptions import NotFoundError, ValidationError
from common.models import RoomStatus


@pytest.fixture()
def rooms(make_room):
    return make_room("Alpha"), make_room("Beta")


@pytest.fixture()
def lifecycle(db_session):
    return BookingLifecycle(db_session)


def by_name(views):
    return {view.name: view for view in views}


class TestRoomsWithBookingInfo:
    def test_current_next_and_totals(self, db_session, rooms, lifecycle):
        alpha, beta = rooms
        lifecycle.create(alpha.id, "Morning", "2025-01-01 09:00:00", "2025-01-01 10:30:00")
        lifecycle.create(alpha.id, "Lunch", "2025-01-01 12:00:00", "2025-01-01 12:45:00")
        lifecycle.create(alpha.id, "Evening", "2025-01-01 17:00:00", "2025-01-01 18:00:00")
        lifecycle.create(alpha.id, "Tomorrow", "2025-01-02 09:00:00", "2025-01-02 10:00:00")

        views = by_name(AvailabilityAggregator(db_session).rooms_with_booking_info("2025-01-01 09:30:00"))

        alpha_view = views["Alpha"]
        assert alpha_view.current_booking.title == "Morning"
        assert alpha_view.next_booking.title == "Lunch"
        assert alpha_view.total_bookings_today == 3
        assert alpha_view.total_booked_minutes_today == 90 + 45 + 60
        assert [b.title for b in alpha_view.all_bookings_today] == ["Morning", "Lunch", "Evening"]

        beta_view = views["Beta"]
        assert beta_view.current_booking is None
        assert beta_view.next_booking is None
        assert beta_view.total_bookings_today == 0
        assert beta_view.all_bookings_today == []

    def test_end_instant_is_not_current(self, db_session, rooms, lifecycle):
        alpha, _ = rooms
        lifecycle.create(alpha.id, "Morning", "2025-01-01 09:00:00", "2025-01-01 10:00:00")
        views = by_name(AvailabilityAggregator(db_session).rooms_with_booking_info("2025-01-01 10:00:00"))
        assert views["Alpha"].current_booking is None
        assert views["Alpha"].next_booking is None

    def test_booking_crossing_midnight_counts_for_both_days(self, db_session, rooms, lifecycle):
        alpha, _ = rooms
        lifecycle.create(alpha.id, "Overnight", "2025-01-01 23:00:00", "2025-01-02 01:00:00")
        aggregator = AvailabilityAggregator(db_session)
        assert by_name(aggregator.rooms_with_booking_info("2025-01-01 12:00:00"))["Alpha"].total_bookings_today == 1
        current = by_name(aggregator.rooms_with_booking_info("2025-01-02 00:30:00"))["Alpha"].current_booking
        assert current.title == "Overnight"

    def test_canceled_bookings_are_ignored(self, db_session, rooms, lifecycle):
        alpha, _ = rooms
        booking = lifecycle.create(alpha.id, "Morning", "2025-01-01 09:00:00", "2025-01-01 10:00:00")
        lifecycle.cancel(booking.id)
        views = by_name(AvailabilityAggregator(db_session).rooms_with_booking_info("2025-01-01 09:30:00"))
        assert views["Alpha"].total_bookings_today == 0

    def test_now_view_is_reused_while_data_is_unchanged(self, db_session, rooms):
        aggregator = AvailabilityAggregator(db_session, cache=RoomsViewCache(ttl=60), clock=lambda: "2025-01-01 09:30:00")

        first = aggregator.rooms_with_booking_info()

        assert aggregator.rooms_with_booking_info() is first

    def test_write_through_another_cache_is_seen(self, db_session, rooms):
        alpha, _ = rooms
        reader = AvailabilityAggregator(db_session, cache=RoomsViewCache(ttl=3600), clock=lambda: "2025-01-01 08:30:00")
        assert by_name(reader.rooms_with_booking_info())["Alpha"].next_booking is None

        writer_session = SessionLocal()
        try:
            BookingLifecycle(writer_session, cache=RoomsViewCache(ttl=3600)).create(
                alpha.id, "Morning", "2025-01-01 09:00:00", "2025-01-01 10:00:00"
            )
        finally:
            writer_session.close()

        alpha_view = by_name(reader.rooms_with_booking_info())["Alpha"]
        assert alpha_view.next_booking.title == "Morning"
        assert alpha_view.total_bookings_today == 1

    def test_single_room_lookup(self, db_session, rooms):
        aggregator = AvailabilityAggregator(db_session)
        assert aggregator.room_with_booking_info(rooms[1].id, "2025-01-01 09:00:00").name == "Beta"
        with pytest.raises(NotFoundError):
            aggregator.room_with_booking_info(999, "2025-01-01 09:00:00")


class TestAvailableRooms:
    def test_complement_of_busy_rooms(self, db_session, rooms, lifecycle):
        alpha, beta = rooms
        lifecycle.create(alpha.id, "Morning", "2025-01-01 09:00:00", "2025-01-01 10:00:00")
        available = AvailabilityAggregator(db_session).available_rooms("2025-01-01", "09:00", "10:00")
        assert [room.id for room in available] == [beta.id]

    def test_touching_booking_does_not_block(self, db_session, rooms, lifecycle):
        alpha, _ = rooms
        lifecycle.create(alpha.id, "Morning", "2025-01-01 09:00:00", "2025-01-01 10:00:00")
        available = AvailabilityAggregator(db_session).available_rooms("2025-01-01", "10:00", "11:00")
        assert {room.name for room in available} == {"Alpha", "Beta"}

    def test_excludes_rooms_not_active(self, db_session, rooms, make_room):
        make_room("Broken", status=RoomStatus.MAINTENANCE)
        make_room("Retired", status=RoomStatus.INACTIVE)
        available = AvailabilityAggregator(db_session).available_rooms("2025-01-01", "09:00", "10:00")
        assert {room.name for room in available} == {"Alpha", "Beta"}

    def test_inverted_slot(self, db_session):
        with pytest.raises(ValidationError):
            AvailabilityAggregator(db_session).available_rooms("2025-01-01", "10:00", "09:00")


class TestCheckSlot:
    def test_returns_conflicting_booking_or_none(self, db_session, rooms, lifecycle):
        alpha, beta = rooms
        lifecycle.create(alpha.id, "Morning", "2025-01-01 09:00:00", "2025-01-01 10:00:00")
        aggregator = AvailabilityAggregator(db_session)
        assert aggregator.check_slot(alpha.id, "2025-01-01", "09:30", "11:00").title == "Morning"
        assert aggregator.check_slot(alpha.id, "2025-01-01", "10:00", "11:00") is None
        assert aggregator.check_slot(beta.id, "2025-01-01", "09:30", "11:00") is None

    def test_unknown_room(self, db_session):
        with pytest.raises(NotFoundError):
            AvailabilityAggregator(db_session).check_slot(42, "2025-01-01", "09:00", "10:00")


class TestRoomBookings:
    def test_filters_by_day(self, db_session, rooms, lifecycle):
        alpha, _ = rooms
        lifecycle.create(alpha.id, "Day one", "2025-01-01 09:00:00", "2025-01-01 10:00:00")
        lifecycle.create(alpha.id, "Day two", "2025-01-02 09:00:00", "2025-01-02 10:00:00")
        aggregator = AvailabilityAggregator(db_session)
        assert [b.title for b in aggregator.room_bookings(alpha.id)] == ["Day one", "Day two"]
        assert [b.title for b in aggregator.room_bookings(alpha.id, "2025-01-02")] == ["Day two"]
