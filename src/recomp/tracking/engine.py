"""One full, independent recomputation of a user's TDEE estimate."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, Optional, Sequence

from recomp.config.settings import EngineConfig
from recomp.tracking.conditioning import ConditionedSeries, condition_series, window_points
from recomp.tracking.context import EstimationContext
from recomp.tracking.formula import ActivityConfig, formula_estimate
from recomp.tracking.models import (
    DailyDataPoint,
    RegressionAnalysis,
    TDEEEstimate,
    UserProfile,
)
from recomp.tracking.quality import DataQualityCheck, check_data_quality
from recomp.tracking.regression import build_regression_analysis
from recomp.tracking.selector import (
    EstimatorStrategy,
    Selection,
    append_history,
    select_estimate,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineResult:
    """Everything produced by a recompute."""

    as_of: date
    quality: DataQualityCheck
    series: ConditionedSeries
    selection: Selection
    estimate: Optional[TDEEEstimate]
    formula: Optional[TDEEEstimate]
    analysis: Optional[RegressionAnalysis]

    @property
    def authoritative(self) -> bool:
        return self.selection.authoritative


def _latest_mass(points: Sequence[DailyDataPoint]) -> Optional[float]:
    for point in reversed(points):
        if point.body_mass_kg is not None:
            return point.body_mass_kg
    return None


def recompute_estimate(
    points: Iterable[DailyDataPoint],
    profile: Optional[UserProfile] = None,
    activity: Optional[ActivityConfig] = None,
    config: Optional[EngineConfig] = None,
    previous: Optional[TDEEEstimate] = None,
    as_of: Optional[date] = None,
    strategies: Optional[Sequence[EstimatorStrategy]] = None,
    fallback_weight: Optional[float] = None,
) -> EngineResult:
    """Recompute the estimate from source records.

    Nothing carries over from ``previous`` except its history, so running
    this twice on the same records and date yields an equal estimate with a
    single history entry for that date.

    Args:
        points: Daily records (kg); later records for a date supersede earlier ones
        profile: Anthropometrics for the formula estimate
        activity: Declared activity pattern (defaults to moderate)
        config: Engine tunables
        previous: Currently stored estimate, for its history
        as_of: Date of the recompute (defaults to the latest record)
        strategies: Estimator chain (defaults to the standard chain)
        fallback_weight: Mass used for the formula when no record has one

    Returns:
        EngineResult
    """
    config = config or EngineConfig()
    points = list(points)
    window = window_points(points, config.quality.window_days, as_of)
    if as_of is None:
        as_of = window[-1].date if window else date.today()
    logger.debug("Recomputing estimate as of %s from %d record(s)", as_of, len(points))

    quality = check_data_quality(points, config.quality, config.conditioning, as_of)
    series = condition_series(points, config.quality.window_days, config.conditioning, as_of)

    formula = None
    weight = series.current_weight or _latest_mass(window) or fallback_weight
    if profile is not None and weight is not None:
        formula = formula_estimate(profile, activity or ActivityConfig(), weight)

    ctx = EstimationContext(
        series=series,
        quality=quality,
        profile=profile,
        activity=activity,
        formula=formula,
        config=config,
    )
    selection = select_estimate(ctx, strategies, config.selector)

    estimate = selection.estimate
    if estimate is not None:
        history = previous.estimate_history if previous is not None else ()
        estimate = replace(
            estimate,
            estimate_history=append_history(
                history,
                as_of,
                estimate.estimated_tdee,
                estimate.confidence_score,
                config.selector.max_history,
            ),
        )

    return EngineResult(
        as_of=as_of,
        quality=quality,
        series=series,
        selection=selection,
        estimate=estimate,
        formula=formula,
        analysis=build_regression_analysis(series, config.regression),
    )
