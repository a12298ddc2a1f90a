"""Data quality gate for the trailing estimation window.

The gate never raises for thin data. It reports every issue it finds so the
caller can explain to the user why the adaptive estimate is not yet usable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Optional

import numpy as np

from recomp.config.settings import ConditioningConfig, QualityConfig
from recomp.tracking.conditioning import find_implausible_points, window_points
from recomp.tracking.models import DailyDataPoint


class QualityIssue(Enum):
    """Reason codes reported by the quality gate."""

    TOO_FEW_POINTS = "too_few_points"
    TOO_SPARSE = "too_sparse"
    NO_CALORIE_SIGNAL = "no_calorie_signal"
    LARGE_WEIGHT_SWINGS = "large_weight_swings"


# Issues that make the window insufficient for adaptive estimation
BLOCKING_ISSUES = frozenset({
    QualityIssue.TOO_FEW_POINTS,
    QualityIssue.TOO_SPARSE,
    QualityIssue.NO_CALORIE_SIGNAL,
})


@dataclass(frozen=True)
class DataQualityCheck:
    """Result of the quality gate."""

    sufficient: bool
    reason_codes: frozenset[QualityIssue]
    usable_points: int
    window_days: int
    coverage: float
    calorie_std: float
    suggestions: tuple[str, ...] = field(default=())

    def has(self, issue: QualityIssue) -> bool:
        return issue in self.reason_codes


def _suggestion(issue: QualityIssue, config: QualityConfig, usable: int) -> str:
    if issue is QualityIssue.TOO_FEW_POINTS:
        missing = config.min_points - usable
        return f"Log weight and complete food intake on {missing} more day(s)"
    if issue is QualityIssue.TOO_SPARSE:
        return "Log more consistently; fewer than half the days in the window are complete"
    if issue is QualityIssue.NO_CALORIE_SIGNAL:
        return (
            "Intake barely varies, so expenditure cannot be separated from noise; "
            "the formula estimate is used until intake varies"
        )
    return "Some weigh-ins jump implausibly and were ignored; check for typos"


def check_data_quality(
    points: Iterable[DailyDataPoint],
    config: Optional[QualityConfig] = None,
    conditioning: Optional[ConditioningConfig] = None,
    as_of: Optional[date] = None,
) -> DataQualityCheck:
    """Assess whether the trailing window supports adaptive estimation.

    Args:
        points: Daily records in any order
        config: Gate thresholds
        conditioning: Used for the implausible-swing bound
        as_of: Last day of the window (defaults to the latest record)

    Returns:
        DataQualityCheck listing every applicable reason code
    """
    config = config or QualityConfig()
    conditioning = conditioning or ConditioningConfig()
    in_window = window_points(points, config.window_days, as_of)
    usable = [p for p in in_window if p.is_usable]

    span = 0
    if in_window:
        span = min(config.window_days, (in_window[-1].date - in_window[0].date).days + 1)
    coverage = len(usable) / span if span else 0.0
    calorie_std = float(np.std([p.calories for p in usable])) if usable else 0.0

    issues = set()
    if len(usable) < config.min_points:
        issues.add(QualityIssue.TOO_FEW_POINTS)
    if coverage < config.min_coverage:
        issues.add(QualityIssue.TOO_SPARSE)
    if calorie_std < config.min_calorie_std:
        issues.add(QualityIssue.NO_CALORIE_SIGNAL)
    if find_implausible_points(usable, conditioning.max_daily_change_fraction):
        issues.add(QualityIssue.LARGE_WEIGHT_SWINGS)

    ordered = [issue for issue in QualityIssue if issue in issues]
    return DataQualityCheck(
        sufficient=not (issues & BLOCKING_ISSUES),
        reason_codes=frozenset(issues),
        usable_points=len(usable),
        window_days=span,
        coverage=coverage,
        calorie_std=calorie_std,
        suggestions=tuple(_suggestion(i, config, len(usable)) for i in ordered),
    )
