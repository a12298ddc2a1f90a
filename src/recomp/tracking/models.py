"""Data models for daily records and TDEE estimates."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from recomp.errors import MissingUnitError, ValidationError

# Energy stored per kilogram of body mass change
ENERGY_PER_KG = 7700.0
KG_PER_LB = 0.45359237

# Plausibility limits for a single daily record
MAX_BODY_MASS_KG = 400.0
MAX_DAILY_CALORIES = 15000.0


class MassUnit(Enum):
    """Unit tag carried by every mass value entering the engine."""

    KG = "kg"
    LB = "lb"

    def to_kg(self, value: float) -> float:
        if self is MassUnit.LB:
            return value * KG_PER_LB
        return value

    def from_kg(self, value_kg: float) -> float:
        if self is MassUnit.LB:
            return value_kg / KG_PER_LB
        return value_kg

    @classmethod
    def parse(cls, value: object) -> "MassUnit":
        """Parse a unit tag, rejecting anything that is not exactly kg or lb."""
        if isinstance(value, MassUnit):
            return value
        if value is None or (isinstance(value, float) and math.isnan(value)):
            raise ValidationError("mass unit is required", field="unit")
        text = str(value).strip().lower()
        aliases = {"kg": cls.KG, "kgs": cls.KG, "lb": cls.LB, "lbs": cls.LB}
        if text not in aliases:
            raise ValidationError(f"unknown mass unit '{value}'", field="unit")
        return aliases[text]


class ActivityClass(Enum):
    """Self-reported shape of a day's activity."""

    REST = "rest"
    LIGHT = "light"
    TRAINING = "training"
    HIGH = "high"


class Confidence(Enum):
    """Ordinal reliability tier of an estimate."""

    UNSTABLE = "unstable"
    STABILIZING = "stabilizing"
    STABLE = "stable"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def __lt__(self, other: "Confidence") -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "Confidence") -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: "Confidence") -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: "Confidence") -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank >= other.rank


_CONFIDENCE_RANK = {
    Confidence.UNSTABLE: 0,
    Confidence.STABILIZING: 1,
    Confidence.STABLE: 2,
}


class EstimateSource(Enum):
    """Where an estimate's TDEE came from."""

    REGRESSION = "regression"
    FORMULA = "formula"


@dataclass(frozen=True)
class DailyDataPoint:
    """One day of source data, in kilograms.

    Records are immutable; a later record for the same date supersedes the
    earlier one rather than mutating it.
    """

    date: date
    body_mass_kg: Optional[float]
    calories: Optional[float]
    is_complete: bool = True
    steps: Optional[float] = None
    exercise_calories: Optional[float] = None
    activity_class: Optional[ActivityClass] = None

    def __post_init__(self) -> None:
        if self.body_mass_kg is not None:
            if not math.isfinite(self.body_mass_kg) or self.body_mass_kg <= 0:
                raise ValidationError(
                    f"body mass must be positive, got {self.body_mass_kg} on {self.date}",
                    field="body_mass",
                )
            if self.body_mass_kg > MAX_BODY_MASS_KG:
                raise ValidationError(
                    f"body mass {self.body_mass_kg:.1f} kg on {self.date} is not plausible",
                    field="body_mass",
                )
        if self.calories is not None:
            if not math.isfinite(self.calories) or self.calories < 0:
                raise ValidationError(
                    f"calories must be non-negative, got {self.calories} on {self.date}",
                    field="calories",
                )
            if self.calories > MAX_DAILY_CALORIES:
                raise ValidationError(
                    f"calories {self.calories:.0f} on {self.date} are not plausible",
                    field="calories",
                )
        if self.steps is not None and (not math.isfinite(self.steps) or self.steps < 0):
            raise ValidationError(f"steps must be non-negative on {self.date}", field="steps")
        if self.exercise_calories is not None and (
            not math.isfinite(self.exercise_calories) or self.exercise_calories < 0
        ):
            raise ValidationError(
                f"exercise calories must be non-negative on {self.date}",
                field="exercise_calories",
            )

    @classmethod
    def create(
        cls,
        day: date,
        body_mass: Optional[float],
        unit: Optional[MassUnit | str],
        calories: Optional[float],
        is_complete: bool = True,
        steps: Optional[float] = None,
        exercise_calories: Optional[float] = None,
        activity_class: Optional[ActivityClass | str] = None,
    ) -> "DailyDataPoint":
        """Build a point from a unit-tagged mass.

        Raises:
            MissingUnitError: If a mass is given without a unit
            ValidationError: If any value is out of range
        """
        mass_kg = None
        if body_mass is not None:
            if unit is None:
                raise MissingUnitError([day.isoformat()])
            mass_kg = MassUnit.parse(unit).to_kg(float(body_mass))
        if isinstance(activity_class, str):
            activity_class = ActivityClass(activity_class)
        return cls(
            date=day,
            body_mass_kg=mass_kg,
            calories=float(calories) if calories is not None else None,
            is_complete=is_complete,
            steps=float(steps) if steps is not None else None,
            exercise_calories=float(exercise_calories) if exercise_calories is not None else None,
            activity_class=activity_class,
        )

    @property
    def is_usable(self) -> bool:
        """Both mass and calories present and the log is complete."""
        return self.body_mass_kg is not None and self.calories is not None and self.is_complete

    @property
    def has_activity(self) -> bool:
        return bool(self.steps) or bool(self.exercise_calories)


@dataclass(frozen=True)
class HistoryPoint:
    """Snapshot of a past estimate."""

    date: date
    tdee: float
    confidence_score: float


@dataclass(frozen=True)
class TDEEEstimate:
    """Current TDEE estimate for a user.

    ``standard_error`` is in kcal/day; use ``standard_error_kg_per_week`` for
    the mass-rate equivalent.
    """

    burn_rate_per_kg: float
    estimated_tdee: float
    current_weight: float
    confidence: Confidence
    confidence_score: float
    standard_error: float
    data_points_used: int
    window_days: int
    source: EstimateSource
    estimate_history: tuple[HistoryPoint, ...] = ()
    r_squared: Optional[float] = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.estimated_tdee) or self.estimated_tdee <= 0:
            raise ValidationError(
                f"estimated_tdee must be finite and positive, got {self.estimated_tdee}",
                field="estimated_tdee",
            )
        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValidationError(
                f"confidence_score must be in [0, 1], got {self.confidence_score}",
                field="confidence_score",
            )

    @property
    def standard_error_kg_per_week(self) -> float:
        return self.standard_error / ENERGY_PER_KG * 7

    @property
    def is_adaptive(self) -> bool:
        return self.source is EstimateSource.REGRESSION


@dataclass(frozen=True)
class EnhancedTDEEEstimate(TDEEEstimate):
    """TDEE estimate from the activity-augmented model."""

    base_burn_rate: float = 0.0  # kcal per kg per day
    step_burn_rate: float = 0.0  # kcal per step
    workout_calorie_multiplier: float = 1.0
    average_steps: float = 0.0
    average_workout_calories: float = 0.0
    iterations: int = 0
    outliers_excluded: int = 0


@dataclass(frozen=True)
class RegressionPoint:
    """One conditioned sample as shown in a regression chart."""

    date: date
    weight: float
    calories: float
    actual_change_rate: float  # kg/day
    predicted_change_rate: float  # kg/day

    @property
    def residual(self) -> float:
        return self.actual_change_rate - self.predicted_change_rate


@dataclass(frozen=True)
class RegressionAnalysis:
    """Read-only explanation of a baseline regression fit."""

    points: tuple[RegressionPoint, ...]
    burn_rate_per_kg: float
    estimated_tdee: float
    r_squared: float
    standard_error: float  # kcal/day
    current_weight: float
    energy_per_kg: float
    outliers_excluded: int = 0


@dataclass(frozen=True)
class WeightPrediction:
    """Projected body mass at a horizon."""

    horizon_days: int
    predicted_weight: float
    lower_bound: float
    upper_bound: float
    target_calories: float


@dataclass(frozen=True)
class GoalDatePrediction:
    """Estimated days until a target weight is reached."""

    target_weight: float
    daily_calories: float
    days_required: int
    earliest_days: int
    latest_days: int


@dataclass
class UserProfile:
    """Anthropometrics used by the formula estimator."""

    user_id: Optional[int]
    age: int
    sex: str  # 'male' or 'female'
    height_cm: float
    body_fat_percent: Optional[float] = None
    name: Optional[str] = None
    display_unit: MassUnit = field(default=MassUnit.KG)

    def __post_init__(self) -> None:
        if self.sex not in ("male", "female"):
            raise ValidationError(f"sex must be 'male' or 'female', got '{self.sex}'", field="sex")
        if not 10 <= self.age <= 120:
            raise ValidationError(f"age must be between 10 and 120, got {self.age}", field="age")
        if not 100 <= self.height_cm <= 250:
            raise ValidationError(
                f"height must be between 100 and 250 cm, got {self.height_cm}", field="height_cm"
            )
        if self.body_fat_percent is not None and not 2 <= self.body_fat_percent <= 70:
            raise ValidationError(
                f"body fat percent must be between 2 and 70, got {self.body_fat_percent}",
                field="body_fat_percent",
            )


@dataclass(frozen=True)
class NutritionTarget:
    """Active daily calorie target."""

    user_id: int
    calories: float
    goal_offset: float
    updated_at: date
