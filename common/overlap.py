"""Half-open interval intersection, shared by every read and write path."""
from __future__ import annotations

from typing import Any

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement


def overlaps(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    """True when ``[a_start, a_end)`` and ``[b_start, b_end)`` intersect.

    Intervals that merely touch (``a_end == b_start``) do not overlap, so
    back-to-back bookings are legal. Operands are wall-clock strings and are
    compared lexically.
    """
    return a_start < b_end and a_end > b_start


def overlap_clause(start_column: Any, end_column: Any, start: str, end: str) -> ColumnElement[bool]:
    """The same predicate as :func:`overlaps`, expressed against table columns."""
    return and_(start_column < end, end_column > start)
