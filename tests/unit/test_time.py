"""Tests for UTC helpers and calendar bucketing."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from chartdesk.utils.time import (
    day_start,
    from_unix,
    month_start,
    next_day_boundary,
    next_month_boundary,
    next_week_boundary,
    next_year_boundary,
    to_unix,
    utc_now,
    week_start,
    year_start,
)

# Tuesday 2026-02-10 15:30 UTC
TUESDAY = datetime(2026, 2, 10, 15, 30, tzinfo=UTC)


class TestUtcHelpers:
    def test_utc_now_is_utc(self) -> None:
        assert utc_now().tzinfo == UTC

    def test_unix_roundtrip(self) -> None:
        assert from_unix(to_unix(TUESDAY)) == TUESDAY

    def test_naive_taken_as_utc(self) -> None:
        assert to_unix(datetime(1970, 1, 2)) == 86400


class TestBuckets:
    def test_day_start(self) -> None:
        assert day_start(to_unix(TUESDAY)) == date(2026, 2, 10)

    def test_week_starts_monday(self) -> None:
        assert week_start(to_unix(TUESDAY)) == date(2026, 2, 9)

    def test_sunday_belongs_to_previous_week(self) -> None:
        sunday = datetime(2026, 2, 15, 23, 59, tzinfo=UTC)
        assert week_start(to_unix(sunday)) == date(2026, 2, 9)

    def test_month_and_year(self) -> None:
        ts = to_unix(TUESDAY)
        assert month_start(ts) == date(2026, 2, 1)
        assert year_start(ts) == date(2026, 1, 1)


class TestBoundaries:
    def test_next_day(self) -> None:
        assert next_day_boundary(TUESDAY) == datetime(2026, 2, 11, tzinfo=UTC)

    @pytest.mark.parametrize(
        ("now", "expected"),
        [
            (datetime(2026, 2, 10, 15, 30, tzinfo=UTC), datetime(2026, 2, 16, tzinfo=UTC)),
            (datetime(2026, 2, 15, 23, 0, tzinfo=UTC), datetime(2026, 2, 16, tzinfo=UTC)),
            (datetime(2026, 2, 16, 0, 0, tzinfo=UTC), datetime(2026, 2, 23, tzinfo=UTC)),
        ],
    )
    def test_next_week(self, now: datetime, expected: datetime) -> None:
        assert next_week_boundary(now) == expected

    def test_next_month_rolls_year(self) -> None:
        assert next_month_boundary(datetime(2026, 12, 5, tzinfo=UTC)) == datetime(
            2027, 1, 1, tzinfo=UTC,
        )

    def test_next_year(self) -> None:
        assert next_year_boundary(TUESDAY) == datetime(2027, 1, 1, tzinfo=UTC)
