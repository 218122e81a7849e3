#!/usr/bin/env python3
"""Ensure the indexes the conflict and per-day queries rely on exist."""
from sqlalchemy import inspect, text

from common.database import engine

INDEXES = {
    "bookings": [
        ("ix_booking_room_time", "room_id, start_time, end_time"),
        ("ix_booking_creator_time", "created_by, start_time"),
    ],
    "activity_log": [
        ("ix_activity_log_user", "user_id, timestamp"),
        ("ix_activity_log_entity", "entity_type, entity_id, timestamp"),
    ],
}


def add_indexes() -> list[str]:
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())
    created = []
    with engine.begin() as conn:
        for table, indexes in INDEXES.items():
            if table not in tables:
                continue
            existing = {index["name"] for index in inspector.get_indexes(table)}
            for name, columns in indexes:
                if name in existing:
                    continue
                conn.execute(text(f"CREATE INDEX {name} ON {table} ({columns})"))
                created.append(name)
    return created


if __name__ == "__main__":
    names = add_indexes()
    print(f"Created indexes: {', '.join(names)}" if names else "All indexes already present.")
