"""Gap-aware exponential smoothing for daily body-mass series.

Two filters live here:

1. The Hacker's Diet trend line used for display and for the current weight:
       T_n = T_{n-1} + α × (W_n - T_{n-1})
   seeded with the first measurement.

2. A bias-corrected EWMA used to condition regression samples. It starts
   from zero and divides by the EWMA of a constant 1 series, so early values
   are not pulled toward the seed. Because it is linear with weights that
   depend only on the dates, applying it to both sides of a linear relation
   (y = a + b·x) keeps the relation exact in the smoothed series.

For irregular logging the smoothing factor is time-scaled:
    α_t = 1 - (1 - α)^days
which treats the discrete filter as a sampled continuous exponential decay.

Reference: https://www.fourmilab.ch/hackdiet/
"""

from __future__ import annotations

from datetime import date
from typing import Sequence

import numpy as np

# Classic Hacker's Diet value, roughly a 10 day time constant
DEFAULT_SMOOTHING = 0.1


def time_scaled_alpha(base_alpha: float, days_elapsed: int) -> float:
    """
    Adjust a smoothing factor for the number of days since the last sample.

    Args:
        base_alpha: Per-day smoothing factor in (0, 1]
        days_elapsed: Days since the previous sample (values < 1 count as 1)

    Returns:
        Effective smoothing factor for this step

    Example:
        >>> time_scaled_alpha(0.1, 1)
        0.1
        >>> round(time_scaled_alpha(0.1, 3), 3)
        0.271
    """
    if days_elapsed <= 0:
        days_elapsed = 1
    return 1 - (1 - base_alpha) ** days_elapsed


def update_trend(
    prev_trend: float,
    today_weight: float,
    smoothing: float = DEFAULT_SMOOTHING,
    days_elapsed: int = 1,
) -> float:
    """
    Advance the trend line by one measurement.

    Args:
        prev_trend: Previous trend value
        today_weight: New scale reading (kg)
        smoothing: Base smoothing factor
        days_elapsed: Days since the previous reading

    Returns:
        New trend value
    """
    adjusted_alpha = time_scaled_alpha(smoothing, days_elapsed)
    return prev_trend + adjusted_alpha * (today_weight - prev_trend)


def calculate_trend_from_scratch(
    weights: Sequence[tuple[date, float]],
    smoothing: float = DEFAULT_SMOOTHING,
) -> list[float]:
    """
    Compute the trend line for a dated, chronologically ordered series.

    The first reading seeds the trend. Gaps between readings scale the
    smoothing factor so a reading after a week away counts for more.

    Args:
        weights: (date, kg) tuples in chronological order
        smoothing: Base smoothing factor

    Returns:
        Trend values, same length as ``weights``
    """
    if not weights:
        return []

    trends = [weights[0][1]]
    for (prev_date, _), (curr_date, curr_weight) in zip(weights, weights[1:]):
        days_elapsed = (curr_date - prev_date).days
        trends.append(update_trend(trends[-1], curr_weight, smoothing, days_elapsed))
    return trends


def debiased_ewma(
    values: Sequence[float] | np.ndarray,
    days_elapsed: Sequence[int] | np.ndarray,
    smoothing: float,
) -> np.ndarray:
    """
    Bias-corrected, gap-aware EWMA of a sample series.

    Args:
        values: Samples in chronological order
        days_elapsed: Days covered by each sample (the first entry is the
            length of the first sample's interval)
        smoothing: Base per-day smoothing factor

    Returns:
        Smoothed samples; the first output equals the first input
    """
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return x
    out = np.empty_like(x)
    acc = 0.0
    norm = 0.0
    for i, (value, days) in enumerate(zip(x, days_elapsed)):
        a = time_scaled_alpha(smoothing, int(days))
        acc = (1 - a) * acc + a * value
        norm = (1 - a) * norm + a
        out[i] = acc / norm
    return out
