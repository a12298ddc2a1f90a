"""Series conditioning: turns raw daily records into regression samples.

Daily scale readings swing by a kilogram or more from water, glycogen and gut
content, so day-over-day differences are mostly noise. The conditioner:

1. keeps complete records inside the trailing window (latest record per date),
2. rejects keying errors, i.e. readings that jump further from their
   neighbours than a body can change in the elapsed time,
3. marks under-logged days (intake far below the user's norm) so their
   calories do not enter any sample,
4. builds one sample per interval between consecutive accepted readings,
5. smooths every sample column with the same bias-corrected EWMA.

Smoothing the interval rates is the same as differencing a smoothed mass
series, and smoothing calories with the identical filter keeps the energy
balance relation linear in the conditioned samples.
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

import numpy as np

from recomp.config.settings import ConditioningConfig
from recomp.tracking.ema import calculate_trend_from_scratch, debiased_ewma
from recomp.tracking.models import DailyDataPoint

logger = logging.getLogger(__name__)

# Neighbours on each side used as the reference for keying-error detection
NEIGHBOURHOOD = 3


@dataclass(frozen=True)
class ConditionedSample:
    """One interval between consecutive accepted mass readings."""

    date: date  # start of the interval
    days: int
    mass: float  # smoothed starting mass, kg
    calories: float  # smoothed mean intake over the interval
    steps: float
    workout_calories: float
    rate: float  # smoothed mass change, kg/day
    raw_rate: float
    raw_calories: float


@dataclass(frozen=True)
class ConditionedSeries:
    """Output of :func:`condition_series`."""

    samples: tuple[ConditionedSample, ...]
    trend: tuple[tuple[date, float], ...]
    accepted_dates: tuple[date, ...]
    rejected_dates: tuple[date, ...]
    low_intake_dates: tuple[date, ...]
    usable_points: int
    window_days: int

    @property
    def current_weight(self) -> Optional[float]:
        if not self.trend:
            return None
        return self.trend[-1][1]

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    def column(self, name: str) -> np.ndarray:
        """Return one sample attribute as an array."""
        return np.array([getattr(s, name) for s in self.samples], dtype=float)


def latest_per_date(points: Iterable[DailyDataPoint]) -> list[DailyDataPoint]:
    """Keep the last supplied record for each date, sorted by date."""
    by_date: dict[date, DailyDataPoint] = {}
    for point in points:
        by_date[point.date] = point
    return [by_date[d] for d in sorted(by_date)]


def window_points(
    points: Iterable[DailyDataPoint],
    window_days: int,
    as_of: Optional[date] = None,
) -> list[DailyDataPoint]:
    """Records inside the trailing window ending at ``as_of``.

    Args:
        points: Raw records in any order
        window_days: Window length in days
        as_of: Last day of the window (defaults to the latest record)

    Returns:
        Date-ordered records, one per date
    """
    ordered = latest_per_date(points)
    if not ordered:
        return []
    end = as_of or ordered[-1].date
    start = end - timedelta(days=window_days - 1)
    return [p for p in ordered if start <= p.date <= end]


def find_implausible_points(
    points: Sequence[DailyDataPoint],
    max_daily_change_fraction: float,
) -> list[date]:
    """Dates whose mass jumps implausibly relative to nearby readings.

    Each reading is compared with the median of up to three readings on each
    side. It is rejected when the difference exceeds the allowed fraction of
    body mass per day, scaled by the days to its nearest neighbour.

    Args:
        points: Date-ordered records with a body mass
        max_daily_change_fraction: Largest plausible change per day (0.02 = 2%)

    Returns:
        Dates of rejected readings
    """
    weighed = [p for p in points if p.body_mass_kg is not None]
    rejected = []
    for i, point in enumerate(weighed):
        neighbours = (
            weighed[max(0, i - NEIGHBOURHOOD):i] + weighed[i + 1:i + 1 + NEIGHBOURHOOD]
        )
        if not neighbours:
            continue
        reference = statistics.median(n.body_mass_kg for n in neighbours)
        gap = min(abs((n.date - point.date).days) for n in neighbours)
        allowed = max_daily_change_fraction * max(gap, 1) * reference
        if abs(point.body_mass_kg - reference) > allowed:
            rejected.append(point.date)
    return rejected


def find_low_intake_dates(
    points: Sequence[DailyDataPoint],
    floor: float,
    sd_multiplier: float,
) -> list[date]:
    """Dates whose logged intake is too low to be a complete log."""
    calories = [p.calories for p in points if p.calories is not None]
    if len(calories) < 3:
        return []
    mean = statistics.fmean(calories)
    sd = statistics.stdev(calories)
    threshold = max(floor, mean - sd_multiplier * sd)
    return [p.date for p in points if p.calories is not None and p.calories < threshold]


def condition_series(
    points: Iterable[DailyDataPoint],
    window_days: int,
    config: Optional[ConditioningConfig] = None,
    as_of: Optional[date] = None,
) -> ConditionedSeries:
    """Build smoothed regression samples from raw daily records.

    Args:
        points: Raw daily records (kg)
        window_days: Trailing window length
        config: Conditioning parameters
        as_of: Last day of the window (defaults to the latest record)

    Returns:
        ConditionedSeries, possibly with no samples
    """
    config = config or ConditioningConfig()
    in_window = window_points(points, window_days, as_of)
    usable = [p for p in in_window if p.is_usable]

    span = 0
    if in_window:
        span = min(window_days, (in_window[-1].date - in_window[0].date).days + 1)

    rejected = set(find_implausible_points(usable, config.max_daily_change_fraction))
    low_intake = set(
        find_low_intake_dates(usable, config.low_intake_floor, config.low_intake_sd)
    )
    if rejected:
        logger.warning(
            "Rejected %d implausible weight reading(s): %s",
            len(rejected),
            ", ".join(d.isoformat() for d in sorted(rejected)),
        )
    if low_intake:
        logger.info("Excluding %d under-logged day(s) from intake averages", len(low_intake))

    accepted = [p for p in usable if p.date not in rejected]
    trend_values = calculate_trend_from_scratch(
        [(p.date, p.body_mass_kg) for p in accepted], config.trend_smoothing
    )
    trend = tuple((p.date, t) for p, t in zip(accepted, trend_values))

    rows = []
    for start, end in zip(accepted, accepted[1:]):
        days = (end.date - start.date).days
        intake_days = [
            p for p in usable if start.date <= p.date < end.date and p.date not in low_intake
        ]
        if not intake_days:
            continue
        rows.append((
            start.date,
            days,
            start.body_mass_kg,
            statistics.fmean(p.calories for p in intake_days),
            statistics.fmean(p.steps or 0.0 for p in intake_days),
            statistics.fmean(p.exercise_calories or 0.0 for p in intake_days),
            (end.body_mass_kg - start.body_mass_kg) / days,
        ))

    samples: tuple[ConditionedSample, ...] = ()
    if rows:
        elapsed = [rows[0][1]] + [(b[0] - a[0]).days for a, b in zip(rows, rows[1:])]
        columns = list(zip(*rows))
        smoothed = [
            debiased_ewma(columns[i], elapsed, config.smoothing) for i in range(2, 7)
        ]
        samples = tuple(
            ConditionedSample(
                date=row[0],
                days=row[1],
                mass=float(smoothed[0][i]),
                calories=float(smoothed[1][i]),
                steps=float(smoothed[2][i]),
                workout_calories=float(smoothed[3][i]),
                rate=float(smoothed[4][i]),
                raw_rate=row[6],
                raw_calories=row[3],
            )
            for i, row in enumerate(rows)
        )

    logger.debug(
        "Conditioned %d usable point(s) into %d sample(s) over %d day(s)",
        len(usable),
        len(samples),
        span,
    )
    return ConditionedSeries(
        samples=samples,
        trend=trend,
        accepted_dates=tuple(p.date for p in accepted),
        rejected_dates=tuple(sorted(rejected)),
        low_intake_dates=tuple(sorted(low_intake)),
        usable_points=len(usable),
        window_days=span,
    )
