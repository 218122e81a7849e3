"""SQLAlchemy models shared across all services."""
from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from sqlalchemy import JSON, Enum as SqlEnum, ForeignKey, Index, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .cache import ROOMS_VIEW_KEY
from .database import Base
from .timeutils import WALL_CLOCK_LENGTH, now_wall_clock


def _values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class RoleEnum(str, Enum):
    ADMIN = "admin"
    REGULAR = "regular"


class RoomStatus(str, Enum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"

    @classmethod
    def normalize(cls, value: Any) -> "RoomStatus":
        """Map arbitrary input onto a known status; unknown values become ``active``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.ACTIVE

    @property
    def bookable(self) -> bool:
        return self is RoomStatus.ACTIVE


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELED = "canceled"


class ActionType(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"


class EntityType(str, Enum):
    BOOKING = "BOOKING"
    ROOM = "ROOM"
    USER = "USER"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), unique=True)
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum, values_callable=_values), default=RoleEnum.REGULAR)
    created_at: Mapped[str] = mapped_column(String(WALL_CLOCK_LENGTH), default=now_wall_clock)

    bookings: Mapped[List["Booking"]] = relationship(back_populates="creator", foreign_keys="Booking.created_by")


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    capacity: Mapped[int] = mapped_column(Integer)
    status: Mapped[RoomStatus] = mapped_column(
        SqlEnum(RoomStatus, values_callable=_values), default=RoomStatus.ACTIVE, index=True
    )
    location: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    amenities: Mapped[Optional[list[str]]] = mapped_column(JSON, default=None)
    icon: Mapped[Optional[str]] = mapped_column(String(100), default=None)
    created_at: Mapped[str] = mapped_column(String(WALL_CLOCK_LENGTH), default=now_wall_clock)
    updated_at: Mapped[str] = mapped_column(String(WALL_CLOCK_LENGTH), default=now_wall_clock, onupdate=now_wall_clock)

    bookings: Mapped[List["Booking"]] = relationship(back_populates="room", cascade="all, delete-orphan")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_booking_room_time", "room_id", "start_time", "end_time"),
        Index("ix_booking_creator_time", "created_by", "start_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id", ondelete="CASCADE"))
    title: Mapped[str] = mapped_column(String(255))
    # Fixed-width wall-clock strings: lexical order is chronological order.
    start_time: Mapped[str] = mapped_column(String(WALL_CLOCK_LENGTH), nullable=False)
    end_time: Mapped[str] = mapped_column(String(WALL_CLOCK_LENGTH), nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, default=None)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), default=None)
    status: Mapped[BookingStatus] = mapped_column(
        SqlEnum(BookingStatus, values_callable=_values), default=BookingStatus.CONFIRMED, index=True
    )
    canceled_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), default=None)
    canceled_reason: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    canceled_at: Mapped[Optional[str]] = mapped_column(String(WALL_CLOCK_LENGTH), default=None)
    created_at: Mapped[str] = mapped_column(String(WALL_CLOCK_LENGTH), default=now_wall_clock)
    updated_at: Mapped[str] = mapped_column(String(WALL_CLOCK_LENGTH), default=now_wall_clock, onupdate=now_wall_clock)

    room: Mapped[Room] = relationship(back_populates="bookings")
    creator: Mapped[Optional[User]] = relationship(back_populates="bookings", foreign_keys=[created_by])

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED


class ActivityLog(Base):
    __tablename__ = "activity_log"
    __table_args__ = (
        Index("ix_activity_log_user", "user_id", "timestamp"),
        Index("ix_activity_log_entity", "entity_type", "entity_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), default=None)
    action_type: Mapped[ActionType] = mapped_column(SqlEnum(ActionType, values_callable=_values))
    entity_type: Mapped[EntityType] = mapped_column(SqlEnum(EntityType, values_callable=_values))
    entity_id: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, default=None)
    timestamp: Mapped[str] = mapped_column(String(WALL_CLOCK_LENGTH), default=now_wall_clock, index=True)


class DataVersion(Base):
    """Counter per cached view, bumped inside every transaction that changes its data."""

    __tablename__ = "data_versions"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, default=0)


@event.listens_for(DataVersion.__table__, "after_create")
def _seed_data_versions(target, connection, **_: Any) -> None:
    connection.execute(target.insert().values(name=ROOMS_VIEW_KEY, version=0))
