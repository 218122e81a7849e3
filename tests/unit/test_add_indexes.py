from sqlalchemy import inspect

from common.database import engine
from scripts.add_indexes import add_indexes


def test_add_indexes_is_idempotent():
    add_indexes()

    assert add_indexes() == []
    names = {index["name"] for index in inspect(engine).get_indexes("bookings")}
    assert {"ix_booking_room_time", "ix_booking_creator_time"} <= names
