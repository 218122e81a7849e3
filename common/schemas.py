"""Pydantic schemas shared across the services."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .models import ActionType, BookingStatus, EntityType, RoleEnum, RoomStatus


def _dedupe(values: Optional[List[str]]) -> Optional[List[str]]:
    """Trimmed, non-empty amenities in first-seen order."""
    if values is None:
        return None
    return list(dict.fromkeys(item.strip() for item in values if item and item.strip()))


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserBase(BaseModel):
    name: str = Field(..., max_length=100)
    username: str = Field(..., max_length=50)
    email: EmailStr
    role: RoleEnum = RoleEnum.REGULAR


class UserCreate(UserBase):
    password: str = Field(..., min_length=8)


class UserRead(UserBase):
    id: int
    created_at: str

    model_config = {"from_attributes": True}


class RoomBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    capacity: int = Field(..., gt=0)
    status: RoomStatus = RoomStatus.ACTIVE
    location: Optional[str] = Field(None, max_length=255)
    amenities: Optional[List[str]] = None
    icon: Optional[str] = Field(None, max_length=100)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> RoomStatus:
        return RoomStatus.normalize(value)

    @field_validator("amenities")
    @classmethod
    def _dedupe_amenities(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _dedupe(value)


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    capacity: Optional[int] = Field(None, gt=0)
    status: Optional[RoomStatus] = None
    location: Optional[str] = Field(None, max_length=255)
    amenities: Optional[List[str]] = None
    icon: Optional[str] = Field(None, max_length=100)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> Optional[RoomStatus]:
        return None if value is None else RoomStatus.normalize(value)

    @field_validator("amenities")
    @classmethod
    def _dedupe_amenities(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _dedupe(value)


class RoomRead(RoomBase):
    id: int

    model_config = {"from_attributes": True}


class BookingCreate(BaseModel):
    room_id: int
    title: str
    start_time: str = Field(..., description="Wall-clock timestamp, YYYY-MM-DD HH:mm:ss")
    end_time: str = Field(..., description="Wall-clock timestamp, YYYY-MM-DD HH:mm:ss")
    comment: Optional[str] = None


class BookingUpdate(BaseModel):
    title: Optional[str] = None
    comment: Optional[str] = None
    room_id: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class BookingRead(BaseModel):
    id: int
    room_id: int
    title: str
    start_time: str
    end_time: str
    comment: Optional[str] = None
    created_by: Optional[int] = None
    status: BookingStatus = BookingStatus.CONFIRMED

    model_config = {"from_attributes": True}


class ConflictRead(BaseModel):
    title: str
    start_time: str
    end_time: str

    model_config = {"from_attributes": True}


class RoomWithBookingInfo(RoomRead):
    current_booking: Optional[BookingRead] = None
    next_booking: Optional[BookingRead] = None
    total_bookings_today: int = 0
    total_booked_minutes_today: int = 0
    all_bookings_today: List[BookingRead] = Field(default_factory=list)


class RoomView(RoomWithBookingInfo):
    """Room as shown to a reader: ``display_status`` may be ``night_rest``."""

    display_status: str


class LoginRequest(BaseModel):
    username: str
    password: str


class ActivityLogUser(BaseModel):
    id: int
    name: str
    email: str

    model_config = {"from_attributes": True}


class ActivityLogRead(BaseModel):
    id: int
    user_id: Optional[int] = None
    action_type: ActionType
    entity_type: EntityType
    entity_id: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: str
    user: Optional[ActivityLogUser] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(..., alias="totalPages")
    has_next_page: bool = Field(..., alias="hasNextPage")
    has_previous_page: bool = Field(..., alias="hasPreviousPage")

    model_config = {"populate_by_name": True}


class ActivityLogPage(BaseModel):
    logs: List[ActivityLogRead]
    pagination: Pagination
