"""Reusable FastAPI dependencies for identity, database access and engine wiring."""
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .auth import decode_token, try_decode_token
from .availability import AvailabilityAggregator
from .bookings import BookingLifecycle
from .cache import RoomsViewCache
from .config import get_settings
from .database import get_db
from .exceptions import AuthorizationError
from .models import Booking, RoleEnum, User
from .schemas import RoomWithBookingInfo
from .timeutils import now_wall_clock

settings = get_settings()
oauth_scheme = OAuth2PasswordBearer(tokenUrl="/users/login")
optional_oauth_scheme = OAuth2PasswordBearer(tokenUrl="/users/login", auto_error=False)

rooms_cache: RoomsViewCache[List[RoomWithBookingInfo]] = RoomsViewCache(ttl=settings.room_cache_ttl)


@dataclass(frozen=True)
class Identity:
    principal_id: int
    role: RoleEnum
    username: str

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(principal_id=user.id, role=user.role, username=user.username)


def _user_from_payload(payload: dict[str, Any], db: Session) -> Optional[User]:
    username: str | None = payload.get("sub")
    if username is None:
        return None
    return db.query(User).filter(User.username == username).first()


def get_current_user(token: str = Depends(oauth_scheme), db: Session = Depends(get_db)) -> User:
    payload = decode_token(token)
    if payload.get("sub") is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing subject in token")
    user = _user_from_payload(payload, db)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def get_current_identity(current_user: User = Depends(get_current_user)) -> Identity:
    return Identity.from_user(current_user)


def get_optional_identity(
    token: Optional[str] = Depends(optional_oauth_scheme),
    db: Session = Depends(get_db),
) -> Optional[Identity]:
    """Identity for a valid bearer token; ``None`` (guest) for a missing or invalid one."""
    payload = try_decode_token(token)
    if payload is None:
        return None
    user = _user_from_payload(payload, db)
    return Identity.from_user(user) if user else None


def allow_roles(*roles: RoleEnum) -> Callable[[Identity], Identity]:
    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return identity

    return dependency


def ensure_can_modify(identity: Identity, booking: Booking) -> None:
    """Owner-or-admin rule for reschedule and cancel. Guest bookings are admin-only."""
    if identity.is_admin:
        return
    if booking.created_by is None or booking.created_by != identity.principal_id:
        raise AuthorizationError("Only the booking owner or an admin can change this booking")


def get_clock() -> Callable[[], str]:
    return now_wall_clock


def get_rooms_cache() -> RoomsViewCache[List[RoomWithBookingInfo]]:
    return rooms_cache


def get_lifecycle(
    db: Session = Depends(get_db),
    cache: RoomsViewCache[List[RoomWithBookingInfo]] = Depends(get_rooms_cache),
    clock: Callable[[], str] = Depends(get_clock),
) -> BookingLifecycle:
    return BookingLifecycle(db, cache=cache, clock=clock)


def get_aggregator(
    db: Session = Depends(get_db),
    cache: RoomsViewCache[List[RoomWithBookingInfo]] = Depends(get_rooms_cache),
    clock: Callable[[], str] = Depends(get_clock),
) -> AvailabilityAggregator:
    return AvailabilityAggregator(db, cache=cache, clock=clock)
