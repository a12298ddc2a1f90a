"""Confidence classification for adaptive estimates.

Three independent signals are graded separately and the estimate gets the
lowest grade. A poor fit cannot be rescued by a large sample, and a large
sample with a noisy fit stays at the noisy fit's tier.
"""

from __future__ import annotations

import math
from typing import Optional

from recomp.config.settings import RegressionConfig
from recomp.tracking.models import Confidence

# Data points for a full data score
FULL_DATA_POINTS = 28
# Standard error (kg/week) at which the accuracy score reaches zero
ZERO_ACCURACY_SE = 1.0


def _grade_at_least(value: float, stable: float, stabilizing: float) -> Confidence:
    if value >= stable:
        return Confidence.STABLE
    if value >= stabilizing:
        return Confidence.STABILIZING
    return Confidence.UNSTABLE


def grade_dimensions(
    r_squared: float,
    se_kg_per_week: float,
    data_points: int,
    thresholds: Optional[RegressionConfig] = None,
) -> dict[str, Confidence]:
    """Grade each signal on its own.

    Args:
        r_squared: Coefficient of determination of the fit
        se_kg_per_week: Residual standard error as mass change per week
        data_points: Samples used by the fit
        thresholds: Tier thresholds

    Returns:
        Mapping of "fit", "error" and "data" to their tier
    """
    t = thresholds or RegressionConfig()
    if not math.isfinite(r_squared):
        fit = Confidence.UNSTABLE
    else:
        fit = _grade_at_least(r_squared, t.stable_r_squared, t.stabilizing_r_squared)

    if not math.isfinite(se_kg_per_week) or se_kg_per_week > t.stabilizing_se_kg_per_week:
        error = Confidence.UNSTABLE
    elif se_kg_per_week > t.stable_se_kg_per_week:
        error = Confidence.STABILIZING
    else:
        error = Confidence.STABLE

    data = _grade_at_least(data_points, t.stable_points, t.stabilizing_points)
    return {"fit": fit, "error": error, "data": data}


def classify_confidence(
    r_squared: float,
    se_kg_per_week: float,
    data_points: int,
    thresholds: Optional[RegressionConfig] = None,
) -> Confidence:
    """Return the minimum tier across fit, error and data count."""
    return min(grade_dimensions(r_squared, se_kg_per_week, data_points, thresholds).values())


def confidence_score(r_squared: float, se_kg_per_week: float, data_points: int) -> float:
    """Continuous 0-1 score for display and history charts.

    Averages a data score (saturating at four weeks of samples), an accuracy
    score that falls linearly with standard error, and the fit's R².
    """
    if not (math.isfinite(r_squared) and math.isfinite(se_kg_per_week)):
        return 0.0
    data_score = min(data_points / FULL_DATA_POINTS, 1.0)
    accuracy_score = max(0.0, 1.0 - se_kg_per_week / ZERO_ACCURACY_SE)
    fit_score = min(max(r_squared, 0.0), 1.0)
    return round((data_score + accuracy_score + fit_score) / 3, 4)
