"""Data models for body-composition scans, partitioning and predictions."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from recomp.errors import MissingUnitError, ValidationError
from recomp.tracking.models import MassUnit

# fat + lean + bone must match total within max(ABS, REL * total)
RECONCILE_TOLERANCE_KG = 0.5
RECONCILE_TOLERANCE_FRACTION = 0.015
# Declared body fat percent must match the masses within this many points
BODY_FAT_TOLERANCE_POINTS = 2.0


class TimeOfDay(Enum):
    MORNING_FASTED = "morning_fasted"
    MORNING_FED = "morning_fed"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class Hydration(Enum):
    NORMAL = "normal"
    DEHYDRATED = "dehydrated"
    OVERHYDRATED = "overhydrated"
    UNKNOWN = "unknown"


class ScanConfidence(Enum):
    """Trust in a single scan's readings."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Calibration weight of an observation by the lower-confidence scan of the pair
SCAN_CONFIDENCE_WEIGHTS = {
    ScanConfidence.HIGH: 1.0,
    ScanConfidence.MEDIUM: 0.7,
    ScanConfidence.LOW: 0.4,
}


class TrainingAge(Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class CalibrationTier(Enum):
    """Qualitative label for the learned partition ratio."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PredictionConfidence(Enum):
    """Body composition predictions are never labelled high confidence."""

    LOW = "low"
    MODERATE = "moderate"
    REASONABLE = "reasonable"


@dataclass(frozen=True)
class ScanConditions:
    """How a scan was taken."""

    time_of_day: TimeOfDay = TimeOfDay.MORNING_FASTED
    hydration: Hydration = Hydration.UNKNOWN
    recent_workout: bool = False
    # None means "derive from the previous scan's provider"
    same_provider_as_previous: Optional[bool] = None

    def __post_init__(self) -> None:
        if isinstance(self.time_of_day, str):
            object.__setattr__(self, "time_of_day", TimeOfDay(self.time_of_day))
        if isinstance(self.hydration, str):
            object.__setattr__(self, "hydration", Hydration(self.hydration))


@dataclass(frozen=True)
class DEXAScan:
    """A reconciled body-composition scan, masses in kg.

    Construct through :meth:`create`, which converts units, derives missing
    bone mineral, checks that the compartments add up and derives body fat
    percent from the masses.
    """

    scan_id: Optional[int]
    scan_date: date
    total_mass_kg: float
    fat_mass_kg: float
    lean_mass_kg: float
    bone_mineral_kg: float
    body_fat_percent: float
    conditions: ScanConditions = field(default_factory=ScanConditions)
    provider: Optional[str] = None
    is_baseline: bool = False
    confidence: ScanConfidence = ScanConfidence.MEDIUM
    notes: Optional[str] = None

    @property
    def fat_free_mass_kg(self) -> float:
        return self.lean_mass_kg + self.bone_mineral_kg

    @classmethod
    def create(
        cls,
        scan_date: date,
        total_mass: float,
        fat_mass: float,
        lean_mass: float,
        unit: Optional[MassUnit | str],
        bone_mineral: Optional[float] = None,
        body_fat_percent: Optional[float] = None,
        conditions: Optional[ScanConditions] = None,
        provider: Optional[str] = None,
        is_baseline: bool = False,
        confidence: ScanConfidence = ScanConfidence.MEDIUM,
        scan_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> "DEXAScan":
        """Validate and reconcile raw scan values.

        Args:
            scan_date: Date of the scan
            total_mass: Total body mass
            fat_mass: Fat mass
            lean_mass: Lean soft tissue mass (excluding bone)
            unit: Unit of all masses
            bone_mineral: Bone mineral content; derived as the remainder if missing
            body_fat_percent: Reported body fat; must agree with the masses
            conditions: Measurement conditions
            provider: Scan provider or device
            is_baseline: First scan of the current phase
            confidence: Scan confidence (normally from ``score_scan``)
            scan_id: Database identifier
            notes: Free text

        Returns:
            DEXAScan in kg

        Raises:
            MissingUnitError: If no unit is given
            ValidationError: If values are impossible or do not reconcile
        """
        if unit is None:
            raise MissingUnitError([f"scan {scan_date.isoformat()}"])
        mass_unit = MassUnit.parse(unit)
        total = mass_unit.to_kg(float(total_mass))
        fat = mass_unit.to_kg(float(fat_mass))
        lean = mass_unit.to_kg(float(lean_mass))

        for label, value in (("total mass", total), ("fat mass", fat), ("lean mass", lean)):
            if not math.isfinite(value) or value <= 0:
                raise ValidationError(f"{label} must be positive, got {value}", field=label)
        if total > 400:
            raise ValidationError(f"total mass {total:.1f} kg is not plausible", field="total mass")

        tolerance = max(RECONCILE_TOLERANCE_KG, RECONCILE_TOLERANCE_FRACTION * total)
        if bone_mineral is None:
            bone = total - fat - lean
            if bone < -tolerance:
                raise ValidationError(
                    f"fat ({fat:.1f}) + lean ({lean:.1f}) exceeds total ({total:.1f}) kg",
                    field="total mass",
                )
            bone = max(bone, 0.0)
        else:
            bone = mass_unit.to_kg(float(bone_mineral))
            if bone < 0:
                raise ValidationError("bone mineral must be non-negative", field="bone mineral")
            mismatch = fat + lean + bone - total
            if abs(mismatch) > tolerance:
                raise ValidationError(
                    f"compartments sum to {fat + lean + bone:.1f} kg but total is {total:.1f} kg",
                    field="total mass",
                )

        derived_bf = fat / total * 100
        if body_fat_percent is not None and abs(body_fat_percent - derived_bf) > BODY_FAT_TOLERANCE_POINTS:
            raise ValidationError(
                f"body fat {body_fat_percent:.1f}% disagrees with masses ({derived_bf:.1f}%)",
                field="body_fat_percent",
            )

        return cls(
            scan_id=scan_id,
            scan_date=scan_date,
            total_mass_kg=total,
            fat_mass_kg=fat,
            lean_mass_kg=lean,
            bone_mineral_kg=bone,
            body_fat_percent=derived_bf,
            conditions=conditions or ScanConditions(),
            provider=provider,
            is_baseline=is_baseline,
            confidence=confidence,
            notes=notes,
        )


@dataclass(frozen=True)
class PRatioInputs:
    """Covariates at a point in time.

    ``deficit_percent`` is the daily deficit as a percent of TDEE; a negative
    value is a surplus.
    """

    avg_daily_protein_g: float
    body_mass_kg: float
    avg_weekly_sets: float
    deficit_percent: float
    body_fat_percent: float
    sex: str = "male"
    training_age: TrainingAge = TrainingAge.INTERMEDIATE
    is_enhanced: bool = False
    lean_mass_kg: Optional[float] = None
    avg_daily_deficit_kcal: float = 0.0
    personal_history: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.training_age, str):
            object.__setattr__(self, "training_age", TrainingAge(self.training_age))
        if self.sex not in ("male", "female"):
            raise ValidationError(f"sex must be 'male' or 'female', got '{self.sex}'", field="sex")
        if self.body_mass_kg <= 0:
            raise ValidationError("body mass must be positive", field="body_mass_kg")
        if self.avg_daily_protein_g < 0 or self.avg_weekly_sets < 0:
            raise ValidationError("protein and training volume must be non-negative")
        if not 0 < self.body_fat_percent < 100:
            raise ValidationError(
                f"body fat percent must be in (0, 100), got {self.body_fat_percent}",
                field="body_fat_percent",
            )

    @property
    def protein_per_kg(self) -> float:
        return self.avg_daily_protein_g / self.body_mass_kg

    @property
    def is_surplus(self) -> bool:
        return self.deficit_percent < 0


@dataclass(frozen=True)
class PartitionRatioFactors:
    """Covariate factors and the resulting partition ratio."""

    base_ratio: float
    protein_factor: float
    training_factor: float
    deficit_factor: float
    body_fat_factor: float
    age_factor: float
    enhanced_factor: float
    final_p_ratio: float
    confidence_range: tuple[float, float]
    is_surplus: bool = False


@dataclass(frozen=True)
class ScanPairAnalysis:
    start_scan: DEXAScan
    end_scan: DEXAScan
    weight_change: float
    fat_change: float
    lean_change: float
    calculated_p_ratio: float
    duration_days: int
    is_valid: bool
    invalid_reason: Optional[str] = None


@dataclass(frozen=True)
class CalibrationResult:
    learned_p_ratio: Optional[float]
    confidence: float  # 0..1
    tier: CalibrationTier
    data_points: int
    scan_pairs: tuple[ScanPairAnalysis, ...] = ()


@dataclass(frozen=True)
class MassRange:
    optimistic: float
    expected: float
    pessimistic: float


@dataclass(frozen=True)
class PredictionAssumptions:
    avg_daily_deficit: float
    avg_daily_protein: float
    avg_weekly_volume: float
    p_ratio_used: float
    model_p_ratio: float
    learned_p_ratio: Optional[float] = None
    calibration_weight: float = 0.0


@dataclass(frozen=True)
class BodyCompPrediction:
    """Predicted composition at a target weight, with ranges."""

    target_date: Optional[date]
    target_weight: float
    predicted_fat_mass: float
    predicted_lean_mass: float
    predicted_body_fat_percent: float
    fat_mass_range: MassRange
    lean_mass_range: MassRange
    body_fat_percent_range: MassRange
    confidence_level: PredictionConfidence
    confidence_factors: tuple[str, ...]
    assumptions: PredictionAssumptions
    start_scan_id: Optional[int] = None
    created_on: Optional[date] = None

    def summary(self) -> str:
        """Human-readable assumptions summary."""
        a = self.assumptions
        lines = [
            f"Target weight: {self.target_weight:.1f} kg"
            + (f" by {self.target_date.isoformat()}" if self.target_date else ""),
            f"Expected body fat: {self.predicted_body_fat_percent:.1f}% "
            f"(range {self.body_fat_percent_range.optimistic:.1f}-"
            f"{self.body_fat_percent_range.pessimistic:.1f}%)",
            f"Fat mass: {self.predicted_fat_mass:.1f} kg, lean mass: {self.predicted_lean_mass:.1f} kg",
            f"Assumed P-ratio {a.p_ratio_used:.2f} (model {a.model_p_ratio:.2f}"
            + (f", learned {a.learned_p_ratio:.2f} at {a.calibration_weight:.0%} weight" if a.learned_p_ratio is not None else "")
            + ")",
            f"Assumes {a.avg_daily_protein:.0f} g protein/day, {a.avg_weekly_volume:.0f} sets/week, "
            f"{a.avg_daily_deficit:+.0f} kcal/day vs expenditure",
            f"Confidence: {self.confidence_level.value}",
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class PredictionAccuracy:
    """Comparison of a stored prediction with the scan that followed it."""

    predicted_body_fat: float
    actual_body_fat: float
    predicted_fat_mass: float
    actual_fat_mass: float
    predicted_lean_mass: float
    actual_lean_mass: float
    predicted_p_ratio: float
    actual_p_ratio: Optional[float]
    within_range: bool

    @property
    def body_fat_error(self) -> float:
        return self.actual_body_fat - self.predicted_body_fat

    @property
    def fat_mass_error(self) -> float:
        return self.actual_fat_mass - self.predicted_fat_mass

    @property
    def lean_mass_error(self) -> float:
        return self.actual_lean_mass - self.predicted_lean_mass
