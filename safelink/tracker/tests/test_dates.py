"""Tests for calendar-day helpers."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from safelink.tracker.dates import (
    add_days,
    days_between,
    format_day,
    is_within,
    month_days,
    parse_day,
)


class TestParseDay:
    def test_accepts_date(self) -> None:
        assert parse_day(date(2024, 2, 1)) == date(2024, 2, 1)

    def test_truncates_datetime(self) -> None:
        assert parse_day(datetime(2024, 2, 1, 23, 59)) == date(2024, 2, 1)

    def test_iso_string_with_time(self) -> None:
        assert parse_day("2024-02-01T08:30:00.000Z") == date(2024, 2, 1)

    def test_empty_string_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_day("  ")

    def test_malformed_string_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_day("01/02/2024")


class TestArithmetic:
    def test_add_days_crosses_leap_day(self) -> None:
        assert add_days(date(2024, 2, 1), 28) == date(2024, 2, 29)

    def test_add_negative_days(self) -> None:
        assert add_days(date(2024, 3, 1), -1) == date(2024, 2, 29)

    def test_days_between_sign(self) -> None:
        assert days_between(date(2024, 2, 1), date(2024, 2, 20)) == 19
        assert days_between(date(2024, 2, 20), date(2024, 2, 1)) == -19

    def test_format_day(self) -> None:
        assert format_day(date(2024, 1, 5)) == "2024-01-05"

    def test_is_within_inclusive(self) -> None:
        start, end = date(2024, 2, 10), date(2024, 2, 16)
        assert is_within(start, start, end)
        assert is_within(end, start, end)
        assert not is_within(date(2024, 2, 17), start, end)


class TestMonthDays:
    def test_leap_february(self) -> None:
        days = month_days(2024, 2)
        assert len(days) == 29
        assert days[0] == date(2024, 2, 1)
        assert days[-1] == date(2024, 2, 29)

    def test_common_february(self) -> None:
        assert len(month_days(2023, 2)) == 28
