"""
Rotation policy tests: parsing and the three families of thresholds.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta

import pytest

from logwarden.exceptions import ConfigurationError
from logwarden.rotation.policy import (
    AgeThreshold,
    CalendarPattern,
    CalendarUnit,
    FileMeta,
    RotationPolicy,
    SizeThreshold,
    parse_rotation_spec,
)

NOW = datetime(2024, 5, 15, 10, 0, 0)


class TestParsing:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("10K", SizeThreshold(10 * 1024)),
            ("5m", SizeThreshold(5 * 1024**2)),
            ("1G", SizeThreshold(1024**3)),
            ("7", AgeThreshold(7)),
            ("daily", CalendarPattern(CalendarUnit.DAY, 1)),
            ("Weekly", CalendarPattern(CalendarUnit.WEEK, 1)),
            ("monthly", CalendarPattern(CalendarUnit.MONTH, 1)),
            ("3d", CalendarPattern(CalendarUnit.DAY, 3)),
            ("2w", CalendarPattern(CalendarUnit.WEEK, 2)),
            ("6mo", CalendarPattern(CalendarUnit.MONTH, 6)),
            (" 6MO ", CalendarPattern(CalendarUnit.MONTH, 6)),
        ],
    )
    def test_recognised_forms(self, text, expected) -> None:
        assert parse_rotation_spec(text) == expected

    def test_months_are_not_megabytes(self) -> None:
        assert parse_rotation_spec("3mo") != parse_rotation_spec("3M")

    @pytest.mark.parametrize("text", ["", "often", "10KB", "1.5M", "-3", "0", "0K", "2y", "d"])
    def test_unrecognised_forms_raise(self, text) -> None:
        with pytest.raises(ConfigurationError):
            parse_rotation_spec(text)


class TestSizeThreshold:
    def test_rotates_only_above_threshold(self) -> None:
        spec = SizeThreshold(1000)
        assert not spec.should_rotate(FileMeta(size=1000, last_write=NOW), NOW)
        assert spec.should_rotate(FileMeta(size=1001, last_write=NOW), NOW)


class TestAgeThreshold:
    """Age uses the last write time of the active file."""

    def _policy_for_file(self, path, days_ago: int) -> bool:
        stamp = (datetime.now() - timedelta(days=days_ago)).timestamp()
        os.utime(path, (stamp, stamp))
        return RotationPolicy(AgeThreshold(7)).should_rotate(FileMeta.from_path(path))

    def test_eight_days_old_rotates(self, tmp_path) -> None:
        path = tmp_path / "app.log"
        path.write_text("x\n")
        assert self._policy_for_file(path, 8)

    def test_six_days_old_does_not_rotate(self, tmp_path) -> None:
        path = tmp_path / "app.log"
        path.write_text("x\n")
        assert not self._policy_for_file(path, 6)

    def test_exactly_threshold_does_not_rotate(self) -> None:
        meta = FileMeta(size=1, last_write=NOW - timedelta(days=7, hours=1))
        assert not AgeThreshold(7).should_rotate(meta, NOW)


class TestCalendarPattern:
    def test_daily_rotates_after_midnight(self) -> None:
        spec = parse_rotation_spec("daily")
        yesterday_late = FileMeta(size=1, last_write=datetime(2024, 5, 14, 23, 59))
        today_early = FileMeta(size=1, last_write=datetime(2024, 5, 15, 0, 1))
        assert spec.should_rotate(yesterday_late, NOW)
        assert not spec.should_rotate(today_early, NOW)

    def test_every_three_days(self) -> None:
        spec = parse_rotation_spec("3d")
        assert not spec.should_rotate(FileMeta(1, datetime(2024, 5, 13)), NOW)
        assert spec.should_rotate(FileMeta(1, datetime(2024, 5, 12)), NOW)

    def test_weekly_needs_seven_days(self) -> None:
        spec = parse_rotation_spec("weekly")
        assert not spec.should_rotate(FileMeta(1, datetime(2024, 5, 9)), NOW)
        assert spec.should_rotate(FileMeta(1, datetime(2024, 5, 8)), NOW)

    def test_every_two_weeks(self) -> None:
        spec = parse_rotation_spec("2w")
        assert not spec.should_rotate(FileMeta(1, datetime(2024, 5, 2)), NOW)
        assert spec.should_rotate(FileMeta(1, datetime(2024, 5, 1)), NOW)

    def test_monthly_on_month_or_year_change(self) -> None:
        spec = parse_rotation_spec("monthly")
        assert not spec.should_rotate(FileMeta(1, datetime(2024, 5, 1)), NOW)
        assert spec.should_rotate(FileMeta(1, datetime(2024, 4, 30)), NOW)
        assert spec.should_rotate(FileMeta(1, datetime(2023, 5, 20)), NOW)

    def test_every_three_months(self) -> None:
        spec = parse_rotation_spec("3mo")
        assert not spec.should_rotate(FileMeta(1, datetime(2024, 3, 1)), NOW)
        assert spec.should_rotate(FileMeta(1, datetime(2024, 2, 28)), NOW)


class TestRotationPolicy:
    def test_uses_injected_clock(self) -> None:
        policy = RotationPolicy.parse("daily", now=lambda: NOW)
        assert policy.should_rotate(FileMeta(1, datetime(2024, 5, 14, 12)))
