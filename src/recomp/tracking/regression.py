"""Baseline adaptive TDEE: linear regression of mass change on intake.

Energy balance gives

    rate = (calories - TDEE) / E

with ``rate`` in kg/day and ``E`` the energy density of body mass. Fitting
``rate = a + b * calories`` by least squares yields ``E = 1 / b`` and
``TDEE = -a / b``, the intake at which the predicted change is zero.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import stats

from recomp.config.settings import RegressionConfig
from recomp.tracking.conditioning import ConditionedSeries
from recomp.tracking.confidence import classify_confidence, confidence_score
from recomp.tracking.context import EstimationContext
from recomp.tracking.models import (
    ENERGY_PER_KG,
    Confidence,
    EstimateSource,
    RegressionAnalysis,
    RegressionPoint,
    TDEEEstimate,
)

logger = logging.getLogger(__name__)

# Below this spread of conditioned intake the slope is not identifiable
MIN_CALORIE_SPREAD = 1.0
MIN_FIT_POINTS = 3
MIN_REFIT_POINTS = 7


@dataclass(frozen=True)
class BaselineFit:
    """Raw least-squares result on conditioned samples."""

    intercept: float  # kg/day
    slope: float  # kg/day per kcal
    r_squared: float
    se_rate: float  # residual standard error, kg/day
    n: int
    mask: tuple[bool, ...]  # samples used by the final fit
    outliers_excluded: int

    @property
    def energy_per_kg(self) -> float:
        return 1.0 / self.slope

    @property
    def tdee(self) -> float:
        return -self.intercept / self.slope

    @property
    def se_kcal(self) -> float:
        return self.se_rate * ENERGY_PER_KG

    @property
    def se_kg_per_week(self) -> float:
        return self.se_rate * 7


def _ols(calories: np.ndarray, rates: np.ndarray) -> Optional[tuple[float, float, float, float]]:
    """Least squares fit returning (intercept, slope, r², se) or None."""
    n = len(calories)
    if n < MIN_FIT_POINTS or float(np.std(calories)) < MIN_CALORIE_SPREAD:
        return None
    if float(np.std(rates)) == 0.0:
        return None
    result = stats.linregress(calories, rates)
    slope = float(result.slope)
    intercept = float(result.intercept)
    r_squared = float(result.rvalue) ** 2
    residuals = rates - (intercept + slope * calories)
    se = math.sqrt(float(np.sum(residuals ** 2)) / (n - 2)) if n > 2 else math.inf
    if not all(math.isfinite(v) for v in (slope, intercept, r_squared)):
        return None
    return intercept, slope, r_squared, se


def fit_baseline(
    series: ConditionedSeries,
    config: Optional[RegressionConfig] = None,
) -> Optional[BaselineFit]:
    """Fit the energy balance line with one residual-outlier pass.

    Args:
        series: Conditioned samples
        config: Regression settings

    Returns:
        BaselineFit, or None when the data cannot identify a positive slope
        and a plausible TDEE
    """
    config = config or RegressionConfig()
    calories = series.column("calories")
    rates = series.column("rate")
    mask = np.ones(len(calories), dtype=bool)

    first = _ols(calories, rates)
    if first is None:
        logger.debug("Baseline fit degenerate: %d sample(s), no usable intake spread", len(calories))
        return None

    fit = first
    intercept, slope, _, _ = first
    residuals = rates - (intercept + slope * calories)
    sd = float(np.std(residuals, ddof=1)) if len(residuals) > 1 else 0.0
    if sd > 0:
        keep = np.abs(residuals - residuals.mean()) / sd <= config.outlier_sd
        if not keep.all() and keep.sum() >= MIN_REFIT_POINTS:
            refit = _ols(calories[keep], rates[keep])
            if refit is not None:
                fit = refit
                mask = keep
                logger.info("Excluded %d outlier sample(s) from baseline fit", int((~keep).sum()))

    intercept, slope, r_squared, se = fit
    if slope <= 0:
        logger.debug("Baseline fit rejected: non-positive slope %.3g", slope)
        return None
    tdee = -intercept / slope
    if not (math.isfinite(tdee) and config.min_tdee <= tdee <= config.max_tdee):
        logger.debug("Baseline fit rejected: implausible TDEE %.0f", tdee)
        return None

    return BaselineFit(
        intercept=intercept,
        slope=slope,
        r_squared=r_squared,
        se_rate=se,
        n=int(mask.sum()),
        mask=tuple(bool(m) for m in mask),
        outliers_excluded=int((~mask).sum()),
    )


def degenerate_estimate(
    series: ConditionedSeries,
    formula: Optional[TDEEEstimate],
) -> Optional[TDEEEstimate]:
    """Unstable regression estimate carrying the formula TDEE, if any."""
    if formula is None:
        return None
    weight = series.current_weight or formula.current_weight
    return TDEEEstimate(
        burn_rate_per_kg=formula.estimated_tdee / weight,
        estimated_tdee=formula.estimated_tdee,
        current_weight=weight,
        confidence=Confidence.UNSTABLE,
        confidence_score=0.0,
        standard_error=formula.standard_error,
        data_points_used=series.sample_count,
        window_days=series.window_days,
        source=EstimateSource.REGRESSION,
    )


def estimate_baseline(
    series: ConditionedSeries,
    config: Optional[RegressionConfig] = None,
    formula: Optional[TDEEEstimate] = None,
) -> Optional[TDEEEstimate]:
    """Baseline regression estimate with its confidence tier.

    Degenerate fits (flat intake, non-positive slope, implausible TDEE)
    return an unstable estimate carrying the formula TDEE, or None when no
    formula estimate is available either.

    Args:
        series: Conditioned samples
        config: Regression and confidence thresholds
        formula: Formula estimate used as the degenerate fallback value

    Returns:
        TDEEEstimate with source regression, or None
    """
    config = config or RegressionConfig()
    fit = fit_baseline(series, config)
    weight = series.current_weight
    if fit is None or weight is None:
        return degenerate_estimate(series, formula)

    tdee = fit.tdee
    return TDEEEstimate(
        burn_rate_per_kg=tdee / weight,
        estimated_tdee=tdee,
        current_weight=weight,
        confidence=classify_confidence(fit.r_squared, fit.se_kg_per_week, fit.n, config),
        confidence_score=confidence_score(fit.r_squared, fit.se_kg_per_week, fit.n),
        standard_error=fit.se_kcal,
        data_points_used=fit.n,
        window_days=series.window_days,
        source=EstimateSource.REGRESSION,
        r_squared=fit.r_squared,
    )


def build_regression_analysis(
    series: ConditionedSeries,
    config: Optional[RegressionConfig] = None,
) -> Optional[RegressionAnalysis]:
    """Rebuild per-sample actual vs predicted rates for charting."""
    fit = fit_baseline(series, config)
    weight = series.current_weight
    if fit is None or weight is None:
        return None
    points = tuple(
        RegressionPoint(
            date=s.date,
            weight=s.mass,
            calories=s.calories,
            actual_change_rate=s.rate,
            predicted_change_rate=fit.intercept + fit.slope * s.calories,
        )
        for s, used in zip(series.samples, fit.mask)
        if used
    )
    return RegressionAnalysis(
        points=points,
        burn_rate_per_kg=fit.tdee / weight,
        estimated_tdee=fit.tdee,
        r_squared=fit.r_squared,
        standard_error=fit.se_kcal,
        current_weight=weight,
        energy_per_kg=fit.energy_per_kg,
        outliers_excluded=fit.outliers_excluded,
    )


class BaselineRegressionEstimator:
    """Strategy wrapper around :func:`estimate_baseline`."""

    name = "baseline_regression"

    def attempt(self, ctx: EstimationContext) -> Optional[TDEEEstimate]:
        return estimate_baseline(ctx.series, ctx.config.regression, ctx.formula)
