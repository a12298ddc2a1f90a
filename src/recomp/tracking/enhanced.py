"""Activity-augmented TDEE estimation.

Expenditure is modelled per sample as

    TDEE = alpha * mass + beta * steps + gamma * workout_calories

where alpha is the base burn per kg, beta the burn per step and gamma a
correction for tracker-reported workout calories. The parameters are fitted
by projected gradient descent on the squared error of the predicted mass
change rate, with box bounds that keep them physiologically sensible.

Features are scaled to unit RMS before descent so one learning rate suits all
three parameters. The step size is additionally capped at the inverse of the
loss curvature so descent cannot diverge on nearly collinear features.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from recomp.config.settings import EnhancedConfig, RegressionConfig
from recomp.tracking.conditioning import ConditionedSeries
from recomp.tracking.confidence import classify_confidence, confidence_score
from recomp.tracking.context import EstimationContext
from recomp.tracking.models import (
    ENERGY_PER_KG,
    EnhancedTDEEEstimate,
    EstimateSource,
)

logger = logging.getLogger(__name__)

# Starting point: ~13.5 kcal/lb base, 0.04 kcal/step, workouts taken at face value
INITIAL_PARAMS = np.array([30.0, 0.04, 1.0])
N_PARAMS = 3


@dataclass(frozen=True)
class DescentResult:
    """Outcome of one projected gradient descent run."""

    params: np.ndarray  # alpha, beta, gamma in natural units
    iterations: int
    converged: bool


@dataclass(frozen=True)
class DailyTDEEBreakdown:
    """Expenditure for a specific day's activity."""

    base: float
    steps: float
    workout: float
    total: float
    vs_average: float


def _bounds(config: EnhancedConfig) -> tuple[np.ndarray, np.ndarray]:
    lo = np.array([
        config.base_burn_bounds[0],
        config.step_burn_bounds[0],
        config.workout_multiplier_bounds[0],
    ])
    hi = np.array([
        config.base_burn_bounds[1],
        config.step_burn_bounds[1],
        config.workout_multiplier_bounds[1],
    ])
    return lo, hi


def projected_gradient_descent(
    features: np.ndarray,
    target: np.ndarray,
    config: Optional[EnhancedConfig] = None,
) -> DescentResult:
    """Minimise mean squared error of ``features @ params`` against ``target``.

    Args:
        features: (n, 3) matrix of mass, steps, workout calories
        target: Observed expenditure per sample (kcal/day)
        config: Learning rate, iteration cap, tolerance and bounds

    Returns:
        DescentResult with parameters in natural units
    """
    config = config or EnhancedConfig()
    lo, hi = _bounds(config)
    n = len(target)

    rms = np.sqrt(np.mean(features ** 2, axis=0))
    active = rms > 0
    y_scale = float(np.sqrt(np.mean(target ** 2))) or 1.0

    # Work in scaled coordinates: phi_j = theta_j * rms_j / y_scale
    scale = np.where(active, rms, 1.0) / y_scale
    z = np.where(active, features / np.where(active, rms, 1.0), 0.0)
    t = target / y_scale
    phi = np.clip(INITIAL_PARAMS, lo, hi) * scale
    lo_s, hi_s = lo * scale, hi * scale

    curvature = float(np.linalg.eigvalsh(2.0 / n * z.T @ z).max())
    step = config.learning_rate
    if curvature > 0:
        step = min(step, 1.0 / curvature)

    converged = False
    iteration = 0
    for iteration in range(1, config.max_iterations + 1):
        grad = -2.0 / n * z.T @ (t - z @ phi)
        grad[~active] = 0.0
        phi = np.clip(phi - step * grad, lo_s, hi_s)

        grad = -2.0 / n * z.T @ (t - z @ phi)
        grad[~active] = 0.0
        projected = phi - np.clip(phi - grad, lo_s, hi_s)
        if float(np.linalg.norm(projected)) < config.tolerance:
            converged = True
            break

    params = phi / scale
    logger.debug(
        "Gradient descent %s after %d iteration(s): alpha=%.2f beta=%.4f gamma=%.2f",
        "converged" if converged else "stopped",
        iteration,
        *params,
    )
    return DescentResult(params=params, iterations=iteration, converged=converged)


def _design(series: ConditionedSeries) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    features = np.column_stack([
        series.column("mass"),
        series.column("steps"),
        series.column("workout_calories"),
    ])
    calories = series.column("calories")
    rates = series.column("rate")
    target = calories - ENERGY_PER_KG * rates
    return features, target, calories, rates


def has_activity_signal(series: ConditionedSeries) -> bool:
    """True when any sample carries steps or workout calories."""
    return any(s.steps > 0 or s.workout_calories > 0 for s in series.samples)


def estimate_enhanced(
    series: ConditionedSeries,
    config: Optional[EnhancedConfig] = None,
    thresholds: Optional[RegressionConfig] = None,
) -> Optional[EnhancedTDEEEstimate]:
    """Fit the activity-augmented model.

    Returns None, so the caller falls back to the baseline regression, when
    there are fewer than ``min_points`` usable days, no activity data, too
    few samples after outlier exclusion, no convergence, or an implausible
    result.

    Args:
        series: Conditioned samples
        config: Descent settings and bounds
        thresholds: Confidence thresholds and plausible TDEE range

    Returns:
        EnhancedTDEEEstimate or None
    """
    config = config or EnhancedConfig()
    thresholds = thresholds or RegressionConfig()
    min_samples = max(config.min_points - 1, N_PARAMS + 1)
    weight = series.current_weight

    if weight is None or series.usable_points < config.min_points:
        return None
    if series.sample_count < min_samples or not has_activity_signal(series):
        return None

    features, target, calories, rates = _design(series)

    first = projected_gradient_descent(features, target, config)
    if not first.converged:
        logger.info("Activity model did not converge in %d iterations", first.iterations)
        return None

    result = first
    keep = np.ones(len(target), dtype=bool)
    residuals = target - features @ first.params
    sd = float(np.std(residuals, ddof=1))
    if sd > 0:
        keep = np.abs(residuals - residuals.mean()) / sd <= config.outlier_sd
        if not keep.all():
            if keep.sum() < min_samples:
                logger.info("Too few samples left after excluding %d outlier(s)", int((~keep).sum()))
                return None
            result = projected_gradient_descent(features[keep], target[keep], config)
            if not result.converged:
                logger.info("Activity model refit did not converge")
                return None

    alpha, beta, gamma = (float(p) for p in result.params)
    features, calories, rates = features[keep], calories[keep], rates[keep]
    n = int(keep.sum())

    predicted = (calories - features @ result.params) / ENERGY_PER_KG
    ss_res = float(np.sum((rates - predicted) ** 2))
    ss_tot = float(np.sum((rates - rates.mean()) ** 2))
    r_squared = max(0.0, 1 - ss_res / ss_tot) if ss_tot > 0 else 0.0
    se_rate = math.sqrt(ss_res / (n - N_PARAMS)) if n > N_PARAMS else math.inf

    average_steps = float(features[:, 1].mean())
    average_workout = float(features[:, 2].mean())
    tdee = alpha * weight + beta * average_steps + gamma * average_workout
    if not (math.isfinite(tdee) and thresholds.min_tdee <= tdee <= thresholds.max_tdee):
        logger.info("Activity model produced implausible TDEE %.0f", tdee)
        return None
    if not math.isfinite(se_rate):
        return None

    se_kg_per_week = se_rate * 7
    return EnhancedTDEEEstimate(
        burn_rate_per_kg=tdee / weight,
        estimated_tdee=tdee,
        current_weight=weight,
        confidence=classify_confidence(r_squared, se_kg_per_week, n, thresholds),
        confidence_score=confidence_score(r_squared, se_kg_per_week, n),
        standard_error=se_rate * ENERGY_PER_KG,
        data_points_used=n,
        window_days=series.window_days,
        source=EstimateSource.REGRESSION,
        r_squared=r_squared,
        base_burn_rate=alpha,
        step_burn_rate=beta,
        workout_calorie_multiplier=gamma,
        average_steps=average_steps,
        average_workout_calories=average_workout,
        iterations=result.iterations,
        outliers_excluded=int((~keep).sum()),
    )


def daily_tdee(
    estimate: EnhancedTDEEEstimate,
    weight_kg: float,
    steps: float = 0.0,
    workout_calories: float = 0.0,
) -> DailyTDEEBreakdown:
    """Expenditure for one day's planned or logged activity.

    Args:
        estimate: Fitted activity model
        weight_kg: Body mass for the day
        steps: Step count
        workout_calories: Tracker-reported workout calories

    Returns:
        DailyTDEEBreakdown, with ``vs_average`` relative to the estimate's TDEE
    """
    base = estimate.base_burn_rate * weight_kg
    step_part = estimate.step_burn_rate * steps
    workout_part = estimate.workout_calorie_multiplier * workout_calories
    total = base + step_part + workout_part
    return DailyTDEEBreakdown(
        base=round(base),
        steps=round(step_part),
        workout=round(workout_part),
        total=round(total),
        vs_average=round(total - estimate.estimated_tdee),
    )


class ActivityAugmentedEstimator:
    """Strategy wrapper around :func:`estimate_enhanced`."""

    name = "activity_augmented"

    def attempt(self, ctx: EstimationContext) -> Optional[EnhancedTDEEEstimate]:
        return estimate_enhanced(ctx.series, ctx.config.enhanced, ctx.config.regression)
