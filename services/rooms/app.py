from contextlib import asynccontextmanager
from typing import Callable, List, Optional

from circuitbreaker import circuit
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from common.activity_log import activity_log
from common.availability import AvailabilityAggregator
from common.config import get_settings
from common.database import Base, engine, get_db
from common.dependencies import (
    Identity,
    allow_roles,
    get_aggregator,
    get_clock,
    get_optional_identity,
    rooms_cache,
)
from common.error_handlers import apply_error_handlers
from common.gateway import BookingGateway
from common.logging_middleware import add_request_logging
from common.models import ActionType, EntityType, RoleEnum, Room
from common.projection import project_room, project_rooms
from common.rate_limit import apply_rate_limiter, limiter
from common.schemas import RoomCreate, RoomRead, RoomUpdate, RoomView
from common.timeutils import hour_of

settings = get_settings()
_NULLABLE_ROOM_FIELDS = {"location", "amenities", "icon"}


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Rooms Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    apply_error_handlers(fastapi_app)
    add_request_logging(fastapi_app, "rooms")
    Instrumentator().instrument(fastapi_app).expose(fastapi_app, include_in_schema=False)
    return fastapi_app


app = create_app()


def _get_room_or_404(db: Session, room_id: int) -> Room:
    room = db.get(Room, room_id)
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


def _room_changed(identity: Identity, action: ActionType, room: Room, details: dict) -> None:
    rooms_cache.invalidate()
    activity_log.record(identity.principal_id, action, EntityType.ROOM, room.id, details)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "rooms"}


@app.get("/rooms", response_model=List[RoomView])
@circuit(failure_threshold=5, recovery_timeout=60, expected_exception=SQLAlchemyError)
def list_rooms(
    request: Request,
    as_of: Optional[str] = Query(None, alias="asOf", description="YYYY-MM-DD HH:mm:ss; defaults to now"),
    identity: Optional[Identity] = Depends(get_optional_identity),
    aggregator: AvailabilityAggregator = Depends(get_aggregator),
    clock: Callable[[], str] = Depends(get_clock),
) -> List[RoomView]:
    rooms = aggregator.rooms_with_booking_info(as_of)
    return project_rooms(
        rooms,
        hour=hour_of(clock()),
        is_guest=identity is None,
        placeholder=settings.guest_placeholder,
        opening_hour=settings.business_hours_start,
        closing_hour=settings.business_hours_end,
    )


@app.get("/rooms/available", response_model=List[RoomRead])
@limiter.limit("40/minute")
def available_rooms(
    request: Request,
    date: str = Query(..., description="YYYY-MM-DD"),
    start_time: str = Query(..., alias="startTime", description="HH:mm or HH:mm:ss"),
    end_time: str = Query(..., alias="endTime", description="HH:mm or HH:mm:ss"),
    aggregator: AvailabilityAggregator = Depends(get_aggregator),
) -> List[Room]:
    return aggregator.available_rooms(date, start_time, end_time)


@app.get("/rooms/{room_id}", response_model=RoomView)
@limiter.limit("60/minute")
def get_room(
    request: Request,
    room_id: int,
    identity: Optional[Identity] = Depends(get_optional_identity),
    aggregator: AvailabilityAggregator = Depends(get_aggregator),
    clock: Callable[[], str] = Depends(get_clock),
) -> RoomView:
    room = aggregator.room_with_booking_info(room_id)
    return project_room(
        room,
        hour=hour_of(clock()),
        is_guest=identity is None,
        placeholder=settings.guest_placeholder,
        opening_hour=settings.business_hours_start,
        closing_hour=settings.business_hours_end,
    )


@app.post("/rooms", response_model=RoomRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def add_room(
    request: Request,
    room_in: RoomCreate,
    identity: Identity = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> Room:
    room = Room(**room_in.model_dump())
    db.add(room)
    BookingGateway(db).bump_view_version()
    db.commit()
    db.refresh(room)
    _room_changed(identity, ActionType.CREATE, room, {"name": room.name, "status": room.status.value})
    return room


@app.put("/rooms/{room_id}", response_model=RoomRead)
@limiter.limit("15/minute")
def update_room(
    request: Request,
    room_id: int,
    room_update: RoomUpdate,
    identity: Identity = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> Room:
    room = _get_room_or_404(db, room_id)
    update_data = {
        key: value
        for key, value in room_update.model_dump(exclude_unset=True).items()
        if value is not None or key in _NULLABLE_ROOM_FIELDS
    }
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided for update")
    for key, value in update_data.items():
        setattr(room, key, value)
    BookingGateway(db).bump_view_version()
    db.commit()
    db.refresh(room)
    _room_changed(identity, ActionType.UPDATE, room, {key: str(value) for key, value in update_data.items()})
    return room


@app.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("15/minute")
def delete_room(
    request: Request,
    room_id: int,
    identity: Identity = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> None:
    room = _get_room_or_404(db, room_id)
    db.delete(room)
    BookingGateway(db).bump_view_version()
    db.commit()
    _room_changed(identity, ActionType.DELETE, room, {"name": room.name})
