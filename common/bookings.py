"""Booking lifecycle: create, reschedule and cancel.

Each write runs the room gate, the overlap lookup and the insert/update as a
single unit: the room's lock is held and a transaction is open from the first
read to the commit, so two overlapping requests for the same room cannot both
pass the check. Everything rolls back if any step raises.
"""
from __future__ import annotations

import html
import logging
import re
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.orm import Session

from .activity_log import ActivityLogService, activity_log
from .cache import RoomsViewCache
from .config import Settings, get_settings
from .conflicts import ensure_room_bookable, find_conflict
from .exceptions import ConflictError, NotFoundError, ValidationError
from .gateway import BookingGateway
from .locks import RoomLockRegistry, room_locks
from .models import ActionType, Booking, EntityType
from .timeutils import normalize_wall_clock, now_wall_clock

logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_text(value: Optional[str]) -> str:
    """Trim, drop control characters and HTML-escape free text."""
    if value is None:
        return ""
    return html.escape(_CONTROL_CHARS.sub("", str(value)).strip(), quote=True)


def validate_title(value: Optional[str], max_length: int = 200) -> str:
    title = sanitize_text(value)
    if not title:
        raise ValidationError("Title is required")
    if len(title) > max_length:
        raise ValidationError(f"Title must be at most {max_length} characters")
    return title


def validate_comment(value: Optional[str], max_length: int = 1000) -> Optional[str]:
    comment = sanitize_text(value)
    if len(comment) > max_length:
        raise ValidationError(f"Comment must be at most {max_length} characters")
    return comment or None


def validate_reason(value: Optional[str], max_length: int = 255) -> Optional[str]:
    reason = sanitize_text(value)
    if len(reason) > max_length:
        raise ValidationError(f"Cancellation reason must be at most {max_length} characters")
    return reason or None


def validate_interval(start_time: Optional[str], end_time: Optional[str]) -> tuple[str, str]:
    if not start_time or not end_time:
        raise ValidationError("Both start_time and end_time are required")
    start = normalize_wall_clock(start_time)
    end = normalize_wall_clock(end_time)
    if end <= start:
        raise ValidationError("End time must be after start time")
    return start, end


class BookingLifecycle:
    def __init__(
        self,
        session: Session,
        cache: Optional[RoomsViewCache[Any]] = None,
        audit: Optional[ActivityLogService] = None,
        locks: RoomLockRegistry = room_locks,
        settings: Optional[Settings] = None,
        clock: Callable[[], str] = now_wall_clock,
    ) -> None:
        self.session = session
        self.gateway = BookingGateway(session)
        self.cache = cache
        self.audit = audit or activity_log
        self.locks = locks
        self.settings = settings or get_settings()
        self.clock = clock

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def _after_write(self, actor_id: Optional[int], action: ActionType, booking: Booking, details: dict[str, Any]) -> None:
        if self.cache is not None:
            self.cache.invalidate()
        self.audit.record(actor_id, action, EntityType.BOOKING, booking.id, details)

    def _confirmed_booking(self, booking_id: int) -> Booking:
        booking = self.gateway.get_booking(booking_id)
        if booking is None or not booking.is_confirmed:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    @contextmanager
    def _hold_booking(self, booking_id: int, target_room_id: Optional[int] = None) -> Iterator[Booking]:
        """Lock the booking's room (plus ``target_room_id``) and open the transaction.

        The booking is re-read under the lock. If another writer moved it to a
        room outside the held set in the meantime, the locks are released and
        taken again for its new room.
        """
        while True:
            current = self._confirmed_booking(booking_id)
            rooms = {current.room_id}
            if target_room_id is not None:
                rooms.add(target_room_id)
            with self.locks.hold(rooms), self._transaction():
                self.session.refresh(current)
                booking = self._confirmed_booking(booking_id)
                if booking.room_id not in rooms:
                    logger.info("Booking %s moved to room %s while waiting; relocking", booking_id, booking.room_id)
                    continue
                yield booking
                return

    def create(
        self,
        room_id: int,
        title: Optional[str],
        start_time: Optional[str],
        end_time: Optional[str],
        comment: Optional[str] = None,
        creator_id: Optional[int] = None,
    ) -> Booking:
        clean_title = validate_title(title, self.settings.title_max_length)
        clean_comment = validate_comment(comment, self.settings.comment_max_length)
        start, end = validate_interval(start_time, end_time)

        with self.locks.hold([room_id]), self._transaction():
            ensure_room_bookable(self.gateway, room_id, lock=True)
            conflict = find_conflict(self.gateway, room_id, start, end)
            if conflict is not None:
                raise ConflictError.for_booking(conflict)
            booking = self.gateway.insert_booking(
                room_id=room_id,
                title=clean_title,
                comment=clean_comment,
                start_time=start,
                end_time=end,
                created_by=creator_id,
            )

        logger.info("Booking %s created for room %s (%s..%s)", booking.id, room_id, start, end)
        self._after_write(
            creator_id,
            ActionType.CREATE,
            booking,
            {"room_id": room_id, "title": clean_title, "start_time": start, "end_time": end},
        )
        return booking

    def reschedule(
        self,
        booking_id: int,
        title: Optional[str] = None,
        comment: Optional[str] = None,
        room_id: Optional[int] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Booking:
        """Change a confirmed booking in place, keeping its id.

        A title/comment-only change skips the conflict check. Moving the
        booking in time or to another room needs both ``start_time`` and
        ``end_time`` and is checked against the target room, ignoring the
        booking itself.
        """
        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = validate_title(title, self.settings.title_max_length)
        if comment is not None:
            changes["comment"] = validate_comment(comment, self.settings.comment_max_length)

        moves = room_id is not None or start_time is not None or end_time is not None
        if not moves:
            if not changes:
                raise ValidationError("No fields provided for update")
            with self._transaction():
                booking = self._confirmed_booking(booking_id)
                self.gateway.update_booking(booking, changes)
            self._after_write(actor_id, ActionType.UPDATE, booking, changes)
            return booking

        if start_time is None or end_time is None:
            raise ValidationError("start_time and end_time must be changed together")
        start, end = validate_interval(start_time, end_time)

        with self._hold_booking(booking_id, room_id) as booking:
            target_room_id = room_id if room_id is not None else booking.room_id
            ensure_room_bookable(self.gateway, target_room_id, lock=True)
            conflict = find_conflict(self.gateway, target_room_id, start, end, exclude_booking_id=booking_id)
            if conflict is not None:
                raise ConflictError.for_booking(conflict)
            changes.update({"room_id": target_room_id, "start_time": start, "end_time": end})
            self.gateway.update_booking(booking, changes)

        logger.info("Booking %s rescheduled to room %s (%s..%s)", booking_id, target_room_id, start, end)
        self._after_write(actor_id, ActionType.UPDATE, booking, changes)
        return booking

    def cancel(self, booking_id: int, actor_id: Optional[int] = None, reason: Optional[str] = None) -> Booking:
        """Mark a confirmed booking canceled. Canceled or unknown ids raise ``NotFoundError``."""
        clean_reason = validate_reason(reason)
        with self._hold_booking(booking_id) as booking:
            self.gateway.delete_booking(booking, canceled_by=actor_id, canceled_at=self.clock(), reason=clean_reason)

        logger.info("Booking %s canceled", booking_id)
        self._after_write(
            actor_id,
            ActionType.DELETE,
            booking,
            {"room_id": booking.room_id, "title": booking.title, "reason": clean_reason},
        )
        return booking
