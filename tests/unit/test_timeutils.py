"""Unit tests for wall-clock timestamp helpers."""
from datetime import datetime

import pytest

from common.exceptions import ValidationError
from common.timeutils import (
    combine_date_time,
    day_window,
    format_wall_clock,
    hour_of,
    minutes_between,
    normalize_wall_clock,
    now_wall_clock,
    parse_wall_clock,
)


class TestParsing:
    def test_parse_and_format(self):
        parsed = parse_wall_clock("2025-11-13 14:30:00")
        assert parsed == datetime(2025, 11, 13, 14, 30, 0)
        assert parsed.tzinfo is None
        assert format_wall_clock(parsed) == "2025-11-13 14:30:00"

    @pytest.mark.parametrize(
        "value",
        [
            "2025-11-13T14:30:00",
            "2025-11-13 14:30:00+02:00",
            "2025-11-13 14:30",
            "2025-13-01 10:00:00",
            "2025-02-30 10:00:00",
            "",
            None,
        ],
    )
    def test_rejects_other_shapes(self, value):
        with pytest.raises(ValidationError):
            parse_wall_clock(value)

    def test_normalize_strips_whitespace(self):
        assert normalize_wall_clock("  2025-01-01 09:00:00 ") == "2025-01-01 09:00:00"

    def test_now_has_fixed_shape(self):
        value = now_wall_clock()
        assert len(value) == 19
        assert parse_wall_clock(value)


class TestCombine:
    def test_hours_and_minutes(self):
        assert combine_date_time("2025-01-01", "09:00") == "2025-01-01 09:00:00"

    def test_with_seconds(self):
        assert combine_date_time("2025-01-01", "09:00:30") == "2025-01-01 09:00:30"

    @pytest.mark.parametrize("day, clock", [("2025-1-1", "09:00"), ("2025-01-01", "9:00"), ("2025-01-01", "25:00")])
    def test_invalid_parts(self, day, clock):
        with pytest.raises(ValidationError):
            combine_date_time(day, clock)


class TestArithmetic:
    def test_day_window(self):
        assert day_window("2025-12-31 15:20:00") == ("2025-12-31 00:00:00", "2026-01-01 00:00:00")

    def test_minutes_floor(self):
        assert minutes_between("2025-01-01 09:00:00", "2025-01-01 09:45:59") == 45
        assert minutes_between("2025-01-01 23:30:00", "2025-01-02 00:30:00") == 60

    def test_hour_of(self):
        assert hour_of("2025-01-01 06:59:59") == 6

    def test_lexical_order_matches_chronological(self):
        values = ["2025-01-01 10:00:00", "2024-12-31 23:59:59", "2025-01-01 09:05:00"]
        assert sorted(values) == sorted(values, key=parse_wall_clock)
