"""Best-effort audit trail stored in the ``activity_log`` table."""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .database import SessionLocal
from .models import ActionType, ActivityLog, EntityType, User
from .timeutils import now_wall_clock

logger = logging.getLogger(__name__)


class ActivityLogService:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def record(
        self,
        actor_id: Optional[int],
        action: ActionType,
        entity_type: EntityType,
        entity_id: Optional[int],
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Persist one entry in its own session.

        Storage failures are logged and absorbed; the operation being audited
        has already committed and must not fail because of its audit entry.
        """
        timestamp = now_wall_clock()
        session = self._session_factory()
        try:
            session.add(
                ActivityLog(
                    user_id=actor_id,
                    action_type=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    details=details or {},
                    timestamp=timestamp,
                )
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Failed to record %s %s %s", action.value, entity_type.value, entity_id)
            return
        finally:
            session.close()
        logger.info(
            "%s %s (id=%s) by %s at %s",
            action.value,
            entity_type.value,
            entity_id,
            actor_id if actor_id is not None else "GUEST",
            timestamp,
        )

    @staticmethod
    def page(session: Session, page: int, limit: int) -> Tuple[List[Tuple[ActivityLog, Optional[User]]], int]:
        """Newest entries first, each with its actor (``None`` for guests), plus the total count."""
        stmt = (
            select(ActivityLog, User)
            .outerjoin(User, User.id == ActivityLog.user_id)
            .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        rows = [(entry, user) for entry, user in session.execute(stmt).all()]
        total = session.execute(select(func.count()).select_from(ActivityLog)).scalar_one()
        return rows, total


activity_log = ActivityLogService()
