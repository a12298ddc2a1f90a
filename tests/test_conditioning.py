"""Tests for series conditioning."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from recomp.config.settings import ConditioningConfig
from recomp.tracking.conditioning import (
    condition_series,
    find_implausible_points,
    find_low_intake_dates,
    latest_per_date,
    window_points,
)
from recomp.tracking.models import DailyDataPoint

D0 = date(2025, 3, 1)


def day(i: int) -> date:
    return D0 + timedelta(days=i)


def flat_points(n: int, mass: float = 80.0, calories: float = 2500.0) -> list[DailyDataPoint]:
    return [DailyDataPoint(day(i), mass, calories) for i in range(n)]


class TestLatestPerDate:
    def test_later_record_supersedes(self) -> None:
        points = [
            DailyDataPoint(day(1), 80.0, 2000.0),
            DailyDataPoint(day(0), 81.0, 2100.0),
            DailyDataPoint(day(1), 79.5, 2200.0),
        ]
        result = latest_per_date(points)
        assert [p.date for p in result] == [day(0), day(1)]
        assert result[1].body_mass_kg == 79.5

    def test_window_trails_as_of(self) -> None:
        points = flat_points(20)
        result = window_points(points, 7, as_of=day(10))
        assert result[0].date == day(4)
        assert result[-1].date == day(10)


class TestImplausiblePoints:
    """Keying-error detection against neighbouring readings."""

    def test_spike_rejected(self) -> None:
        points = flat_points(9)
        points[4] = DailyDataPoint(day(4), 90.0, 2500.0)
        assert find_implausible_points(points, 0.02) == [day(4)]

    def test_normal_fluctuation_kept(self) -> None:
        masses = [80.0, 80.6, 79.8, 80.4, 79.9, 80.7, 80.1]
        points = [DailyDataPoint(day(i), m, 2500.0) for i, m in enumerate(masses)]
        assert find_implausible_points(points, 0.02) == []

    def test_gap_widens_allowance(self) -> None:
        """A 3 kg change is plausible after three weeks away."""
        points = [
            DailyDataPoint(day(0), 80.0, 2500.0),
            DailyDataPoint(day(1), 80.1, 2500.0),
            DailyDataPoint(day(22), 77.0, 2500.0),
        ]
        assert day(22) not in find_implausible_points(points, 0.02)

    def test_single_point_never_rejected(self) -> None:
        assert find_implausible_points(flat_points(1), 0.02) == []


class TestLowIntake:
    def test_under_logged_day_flagged(self) -> None:
        points = flat_points(9) + [DailyDataPoint(day(9), 80.0, 300.0)]
        assert find_low_intake_dates(points, 500.0, 2.5) == [day(9)]

    def test_floor_applies(self) -> None:
        """Days below the absolute floor are flagged even with high variance."""
        calories = [3000.0, 1000.0, 3000.0, 1000.0, 450.0]
        points = [DailyDataPoint(day(i), 80.0, c) for i, c in enumerate(calories)]
        assert find_low_intake_dates(points, 500.0, 2.5) == [day(4)]

    def test_needs_three_values(self) -> None:
        points = [DailyDataPoint(day(0), 80.0, 2500.0), DailyDataPoint(day(1), 80.0, 100.0)]
        assert find_low_intake_dates(points, 500.0, 2.5) == []


class TestConditionSeries:
    """Tests for condition_series."""

    def test_empty_input(self) -> None:
        series = condition_series([], 35)
        assert series.samples == ()
        assert series.current_weight is None
        assert series.window_days == 0

    def test_one_sample_per_interval(self) -> None:
        series = condition_series(flat_points(10), 35)
        assert series.sample_count == 9
        assert series.usable_points == 10
        assert series.window_days == 10

    def test_raw_rate_uses_elapsed_days(self) -> None:
        points = [
            DailyDataPoint(day(0), 80.0, 2500.0),
            DailyDataPoint(day(1), 80.0, 2500.0),
            DailyDataPoint(day(3), 79.0, 2500.0),
        ]
        series = condition_series(points, 35)
        assert series.samples[1].days == 2
        assert series.samples[1].raw_rate == pytest.approx(-0.5)

    def test_incomplete_days_ignored(self) -> None:
        points = flat_points(8)
        points[3] = DailyDataPoint(day(3), 80.0, 1200.0, is_complete=False)
        series = condition_series(points, 35)
        assert series.usable_points == 7
        assert day(3) not in series.accepted_dates

    def test_rejected_reading_excluded(self) -> None:
        points = flat_points(9)
        points[4] = DailyDataPoint(day(4), 95.0, 2500.0)
        series = condition_series(points, 35)
        assert series.rejected_dates == (day(4),)
        assert day(4) not in series.accepted_dates
        assert all(abs(s.raw_rate) < 0.01 for s in series.samples)

    def test_low_intake_calories_excluded(self) -> None:
        points = flat_points(10)
        points[5] = DailyDataPoint(day(5), 80.0, 200.0)
        series = condition_series(points, 35)
        assert series.low_intake_dates == (day(5),)
        # The interval starting on the under-logged day has no intake left
        assert series.sample_count == 8
        assert all(s.raw_calories == pytest.approx(2500.0) for s in series.samples)

    def test_smoothed_columns(self) -> None:
        series = condition_series(flat_points(10), 35)
        assert series.column("calories") == pytest.approx([2500.0] * 9)
        assert series.column("rate") == pytest.approx([0.0] * 9)
        assert series.current_weight == pytest.approx(80.0)

    def test_custom_config(self) -> None:
        """A stricter bound rejects smaller jumps."""
        points = flat_points(9)
        points[4] = DailyDataPoint(day(4), 81.2, 2500.0)
        loose = condition_series(points, 35)
        strict = condition_series(points, 35, ConditioningConfig(max_daily_change_fraction=0.01))
        assert loose.rejected_dates == ()
        assert strict.rejected_dates == (day(4),)
