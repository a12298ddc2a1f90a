"""Weight trajectory projection from a TDEE estimate."""

from __future__ import annotations

import math
from typing import Iterable, Optional

from recomp.errors import ValidationError
from recomp.tracking.models import (
    ENERGY_PER_KG,
    GoalDatePrediction,
    TDEEEstimate,
    WeightPrediction,
)

# Spread applied to goal-date estimates
GOAL_DATE_SPREAD = 0.15


def predict_weight(
    current_weight: float,
    estimate: TDEEEstimate,
    target_calories: float,
    horizon_days: int,
) -> WeightPrediction:
    """
    Project body mass at a horizon with a widening uncertainty band.

    The band grows with the square root of the horizon, scaled by the
    estimate's standard error.

    Args:
        current_weight: Starting mass (kg)
        estimate: TDEE estimate to project from
        target_calories: Planned daily intake
        horizon_days: Days ahead (0 returns the current weight)

    Returns:
        WeightPrediction in kg
    """
    if horizon_days < 0:
        raise ValidationError(f"horizon must be non-negative, got {horizon_days}", field="horizon_days")
    if horizon_days == 0:
        return WeightPrediction(0, current_weight, current_weight, current_weight, target_calories)

    drift = horizon_days * (target_calories - estimate.estimated_tdee) / ENERGY_PER_KG
    predicted = current_weight + drift
    band = estimate.standard_error * math.sqrt(horizon_days) / ENERGY_PER_KG
    return WeightPrediction(
        horizon_days=horizon_days,
        predicted_weight=predicted,
        lower_bound=predicted - band,
        upper_bound=predicted + band,
        target_calories=target_calories,
    )


def predict_weights(
    current_weight: float,
    estimate: TDEEEstimate,
    target_calories: float,
    horizons: Iterable[int],
) -> list[WeightPrediction]:
    """Project several horizons from one estimate."""
    return [
        predict_weight(current_weight, estimate, target_calories, h) for h in horizons
    ]


def predict_goal_date(
    current_weight: float,
    target_weight: float,
    estimate: TDEEEstimate,
    daily_calories: float,
) -> Optional[GoalDatePrediction]:
    """
    Estimate how long reaching a target weight takes at a fixed intake.

    Args:
        current_weight: Starting mass (kg)
        target_weight: Goal mass (kg)
        estimate: TDEE estimate
        daily_calories: Planned daily intake

    Returns:
        GoalDatePrediction, or None when the intake does not move toward the goal
    """
    daily_change = (daily_calories - estimate.estimated_tdee) / ENERGY_PER_KG
    needed = target_weight - current_weight
    if needed == 0:
        return GoalDatePrediction(target_weight, daily_calories, 0, 0, 0)
    if daily_change == 0 or (needed > 0) != (daily_change > 0):
        return None

    days = math.ceil(needed / daily_change)
    return GoalDatePrediction(
        target_weight=target_weight,
        daily_calories=daily_calories,
        days_required=days,
        earliest_days=math.floor(days * (1 - GOAL_DATE_SPREAD)),
        latest_days=math.ceil(days * (1 + GOAL_DATE_SPREAD)),
    )
