"""Formula-based TDEE: basal rate times an activity multiplier.

Uses Katch-McArdle when body fat is known (it depends only on lean mass) and
Mifflin-St Jeor otherwise. The result is always computable from
anthropometrics, so it serves as the fallback and as a sanity anchor for the
adaptive estimates.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from recomp.errors import ValidationError
from recomp.tracking.context import EstimationContext
from recomp.tracking.models import (
    Confidence,
    EstimateSource,
    TDEEEstimate,
    UserProfile,
)


class ActivityLevel(Enum):
    """Activity level multipliers for TDEE calculation."""
    SEDENTARY = "sedentary"          # Little or no exercise
    LIGHT = "light"                  # Light exercise 1-3 days/week
    MODERATE = "moderate"            # Moderate exercise 3-5 days/week
    ACTIVE = "active"                # Hard exercise 6-7 days/week
    VERY_ACTIVE = "very_active"      # Very hard exercise, physical job


class WorkoutIntensity(Enum):
    LIGHT = "light"
    MODERATE = "moderate"
    INTENSE = "intense"


# Harris-Benedict activity factors
ACTIVITY_MULTIPLIERS = {
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHT: 1.375,
    ActivityLevel.MODERATE: 1.55,
    ActivityLevel.ACTIVE: 1.725,
    ActivityLevel.VERY_ACTIVE: 1.9,
}

# Intense training bump: half of an 8 MET allowance, the rest is assumed to be
# covered by the activity multiplier already
INTENSE_WORKOUT_MET = 8.0
INTENSE_WORKOUT_SHARE = 0.5
INTENSE_MIN_WORKOUTS = 4

FORMULA_CONFIDENCE_SCORE = 0.2
FORMULA_STANDARD_ERROR = 300.0  # kcal/day


@dataclass
class ActivityConfig:
    """Declared activity pattern."""

    activity_level: ActivityLevel = ActivityLevel.MODERATE
    workouts_per_week: int = 0
    avg_workout_minutes: float = 0.0
    intensity: WorkoutIntensity = WorkoutIntensity.MODERATE

    def __post_init__(self) -> None:
        if isinstance(self.activity_level, str):
            self.activity_level = ActivityLevel(self.activity_level)
        if isinstance(self.intensity, str):
            self.intensity = WorkoutIntensity(self.intensity)
        if not 0 <= self.workouts_per_week <= 21:
            raise ValidationError(
                f"workouts_per_week must be between 0 and 21, got {self.workouts_per_week}",
                field="workouts_per_week",
            )
        if self.avg_workout_minutes < 0:
            raise ValidationError("avg_workout_minutes must be non-negative", field="avg_workout_minutes")


def calculate_bmr(
    age: int,
    sex: str,
    height_cm: float,
    weight_kg: float,
    body_fat_percent: Optional[float] = None,
) -> float:
    """Calculate basal metabolic rate.

    Args:
        age: Age in years
        sex: 'male' or 'female'
        height_cm: Height in centimetres
        weight_kg: Body mass in kilograms
        body_fat_percent: Optional body fat percentage (switches to Katch-McArdle)

    Returns:
        BMR in kcal per day
    """
    if body_fat_percent:
        lean_mass_kg = weight_kg * (1 - body_fat_percent / 100)
        return 370 + 21.6 * lean_mass_kg

    bmr = 10 * weight_kg + 6.25 * height_cm - 5 * age
    if sex == "male":
        return bmr + 5
    return bmr - 161


def calculate_tdee(profile: UserProfile, activity: ActivityConfig, weight_kg: float) -> float:
    """BMR times the activity multiplier plus the intense-training bump."""
    bmr = calculate_bmr(
        profile.age, profile.sex, profile.height_cm, weight_kg, profile.body_fat_percent
    )
    tdee = bmr * ACTIVITY_MULTIPLIERS[activity.activity_level]

    if (
        activity.workouts_per_week >= INTENSE_MIN_WORKOUTS
        and activity.intensity is WorkoutIntensity.INTENSE
    ):
        hours_per_week = activity.workouts_per_week * activity.avg_workout_minutes / 60
        weekly_kcal = INTENSE_WORKOUT_MET * weight_kg * hours_per_week
        tdee += weekly_kcal / 7 * INTENSE_WORKOUT_SHARE

    return float(round(tdee))


def formula_estimate(
    profile: UserProfile,
    activity: ActivityConfig,
    weight_kg: float,
) -> TDEEEstimate:
    """Formula TDEE packaged as a low-confidence estimate."""
    if weight_kg <= 0:
        raise ValidationError(f"weight must be positive, got {weight_kg}", field="weight")
    tdee = calculate_tdee(profile, activity, weight_kg)
    return TDEEEstimate(
        burn_rate_per_kg=tdee / weight_kg,
        estimated_tdee=tdee,
        current_weight=weight_kg,
        confidence=Confidence.UNSTABLE,
        confidence_score=FORMULA_CONFIDENCE_SCORE,
        standard_error=FORMULA_STANDARD_ERROR,
        data_points_used=0,
        window_days=0,
        source=EstimateSource.FORMULA,
    )


class FormulaEstimator:
    """Strategy wrapper; available whenever anthropometrics exist."""

    name = "formula"

    def attempt(self, ctx: EstimationContext) -> Optional[TDEEEstimate]:
        return ctx.formula
