from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.orm import Session

from common.availability import AvailabilityAggregator
from common.bookings import BookingLifecycle
from common.config import get_settings
from common.database import Base, engine, get_db
from common.dependencies import (
    Identity,
    allow_roles,
    ensure_can_modify,
    get_aggregator,
    get_current_identity,
    get_lifecycle,
    get_optional_identity,
)
from common.error_handlers import apply_error_handlers
from common.exceptions import ConflictError, NotFoundError
from common.gateway import BookingGateway
from common.logging_middleware import add_request_logging
from common.models import Booking, RoleEnum
from common.projection import redact_booking
from common.rate_limit import apply_rate_limiter, limiter
from common.schemas import BookingCreate, BookingRead, BookingUpdate, ConflictRead

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Bookings Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    apply_error_handlers(fastapi_app)
    add_request_logging(fastapi_app, "bookings")
    Instrumentator().instrument(fastapi_app).expose(fastapi_app, include_in_schema=False)
    return fastapi_app


app = create_app()


def _load_confirmed(db: Session, booking_id: int) -> Booking:
    booking = BookingGateway(db).get_booking(booking_id)
    if booking is None or not booking.is_confirmed:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "bookings"}


@app.get("/bookings", response_model=List[BookingRead])
@limiter.limit("30/minute")
def list_bookings(
    request: Request,
    _: Identity = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> List[Booking]:
    return BookingGateway(db).query_bookings(confirmed_only=False, newest_first=True)


@app.get("/bookings/check-conflict/{room_id}", response_model=Optional[ConflictRead])
@limiter.limit("60/minute")
def check_conflict(
    request: Request,
    room_id: int,
    date: str = Query(..., description="YYYY-MM-DD"),
    start_time: str = Query(..., alias="startTime", description="HH:mm or HH:mm:ss"),
    end_time: str = Query(..., alias="endTime", description="HH:mm or HH:mm:ss"),
    identity: Optional[Identity] = Depends(get_optional_identity),
    aggregator: AvailabilityAggregator = Depends(get_aggregator),
) -> Optional[ConflictRead]:
    conflict = aggregator.check_slot(room_id, date, start_time, end_time)
    if conflict is None:
        return None
    result = ConflictRead.model_validate(conflict)
    if identity is None:
        result = result.model_copy(update={"title": settings.guest_placeholder})
    return result


@app.get("/bookings/room/{room_id}", response_model=List[BookingRead])
@limiter.limit("60/minute")
def room_bookings(
    request: Request,
    room_id: int,
    date: Optional[str] = Query(None, description="Restrict to one day, YYYY-MM-DD"),
    identity: Optional[Identity] = Depends(get_optional_identity),
    aggregator: AvailabilityAggregator = Depends(get_aggregator),
) -> List[BookingRead]:
    bookings = [BookingRead.model_validate(b) for b in aggregator.room_bookings(room_id, date)]
    if identity is None:
        bookings = [redact_booking(b, settings.guest_placeholder) for b in bookings]
    return bookings


@app.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_booking(
    request: Request,
    booking_in: BookingCreate,
    identity: Optional[Identity] = Depends(get_optional_identity),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> Booking:
    if identity is None and not settings.allow_guest_bookings:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required to book a room")
    try:
        return lifecycle.create(
            room_id=booking_in.room_id,
            title=booking_in.title,
            start_time=booking_in.start_time,
            end_time=booking_in.end_time,
            comment=booking_in.comment,
            creator_id=identity.principal_id if identity else None,
        )
    except ConflictError as exc:
        if identity is None:
            raise exc.redacted(settings.guest_placeholder) from None
        raise


@app.put("/bookings/{booking_id}", response_model=BookingRead)
@limiter.limit("20/minute")
def update_booking(
    request: Request,
    booking_id: int,
    booking_update: BookingUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> Booking:
    ensure_can_modify(identity, _load_confirmed(db, booking_id))
    return lifecycle.reschedule(
        booking_id,
        actor_id=identity.principal_id,
        **booking_update.model_dump(exclude_unset=True),
    )


@app.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("20/minute")
def cancel_booking(
    request: Request,
    booking_id: int,
    reason: Optional[str] = Query(None, max_length=255),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
) -> None:
    ensure_can_modify(identity, _load_confirmed(db, booking_id))
    lifecycle.cancel(booking_id, actor_id=identity.principal_id, reason=reason)
