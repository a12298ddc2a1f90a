"""Actionable advice derived from the partition ratio factors.

Each factor that is holding the ratio back (protein, training volume,
deficit size, leanness) produces a recommendation with the current value and
a target. Recommendations are ordered high priority first.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence

from recomp.bodycomp.models import PartitionRatioFactors, PRatioInputs, TrainingAge
from recomp.errors import ValidationError

TARGET_PROTEIN_PER_KG = 2.0
TARGET_WEEKLY_SETS = "15+ sets/muscle/week"
TARGET_DEFICIT = "15-20% deficit"

# Ratios under this during a deficit mean several factors are working against the user
CONSISTENCY_THRESHOLD = 0.75

# Factor values reached with optimal protein, training and deficit
OPTIMAL_FACTORS = {"protein": 1.08, "training": 1.06, "deficit": 1.04}


class RecommendationCategory(Enum):
    PROTEIN = "protein"
    TRAINING = "training"
    DEFICIT = "deficit"
    GENERAL = "general"


class RecommendationPriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return ("high", "medium", "low").index(self.value)


@dataclass(frozen=True)
class BodyCompRecommendation:
    """One piece of advice with optional current and target values."""

    category: RecommendationCategory
    priority: RecommendationPriority
    title: str
    description: str
    impact: str
    current_value: Optional[str] = None
    target_value: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.category, str):
            object.__setattr__(self, "category", RecommendationCategory(self.category))
        if isinstance(self.priority, str):
            object.__setattr__(self, "priority", RecommendationPriority(self.priority))
        if not self.title.strip():
            raise ValidationError("recommendation title must not be empty", field="title")
        if (self.current_value is None) != (self.target_value is None):
            raise ValidationError(
                "current and target values must be given together", field="target_value"
            )


@dataclass(frozen=True)
class ImprovementPotential:
    current_p_ratio: float
    potential_p_ratio: float
    improvement_percent: int


def _protein(
    factors: PartitionRatioFactors, inputs: PRatioInputs
) -> Optional[BodyCompRecommendation]:
    if factors.protein_factor >= 1.0:
        return None
    per_kg = inputs.protein_per_kg
    target_g = round(inputs.body_mass_kg * TARGET_PROTEIN_PER_KG)
    if factors.protein_factor < 0.92:
        description = (
            f"You're averaging {per_kg:.1f} g/kg. 1.8-2.2 g/kg markedly improves lean "
            "retention in a deficit; this is the most impactful lever."
        )
    else:
        description = (
            f"You're at {per_kg:.1f} g/kg. Moving to {TARGET_PROTEIN_PER_KG:.1f} g/kg "
            "may preserve more lean mass."
        )
    return BodyCompRecommendation(
        category=RecommendationCategory.PROTEIN,
        priority=(
            RecommendationPriority.HIGH if factors.protein_factor < 0.95
            else RecommendationPriority.MEDIUM
        ),
        title="Increase protein intake",
        description=description,
        impact="Could shift 2-5% more of the change toward fat",
        current_value=f"{inputs.avg_daily_protein_g:.0f} g ({per_kg:.1f} g/kg)",
        target_value=f"{target_g} g ({TARGET_PROTEIN_PER_KG:.1f} g/kg)",
    )


def _training(
    factors: PartitionRatioFactors, inputs: PRatioInputs
) -> Optional[BodyCompRecommendation]:
    if factors.training_factor >= 1.0:
        return None
    sets = inputs.avg_weekly_sets
    if factors.training_factor < 0.92:
        description = (
            f"You're averaging {sets:.0f} sets/week. Training is the signal that keeps "
            "lean tissue; without it more of the loss comes from muscle."
        )
    else:
        description = (
            f"You're at {sets:.0f} sets/week. Holding or slightly raising volume "
            "helps preserve lean mass."
        )
    return BodyCompRecommendation(
        category=RecommendationCategory.TRAINING,
        priority=(
            RecommendationPriority.HIGH if factors.training_factor < 0.95
            else RecommendationPriority.MEDIUM
        ),
        title="Maintain training volume",
        description=description,
        impact="Could improve lean retention by 5-10%",
        current_value=f"{sets:.0f} sets/week",
        target_value=TARGET_WEEKLY_SETS,
    )


def _deficit(
    factors: PartitionRatioFactors, inputs: PRatioInputs
) -> Optional[BodyCompRecommendation]:
    if factors.is_surplus or factors.deficit_factor >= 0.95:
        return None
    pct = inputs.deficit_percent
    if factors.deficit_factor < 0.88:
        description = (
            f"A {pct:.0f}% deficit is very aggressive and raises the risk of lean loss. "
            "Consider a more moderate approach."
        )
    else:
        description = (
            f"A {pct:.0f}% deficit is aggressive. A moderate deficit keeps more lean "
            "mass even though loss is slower."
        )
    return BodyCompRecommendation(
        category=RecommendationCategory.DEFICIT,
        priority=RecommendationPriority.MEDIUM,
        title="Consider reducing the deficit",
        description=description,
        impact="Slower loss but better composition",
        current_value=f"{pct:.0f}% deficit",
        target_value=TARGET_DEFICIT,
    )


def _general(factors: PartitionRatioFactors, inputs: PRatioInputs) -> list[BodyCompRecommendation]:
    recs = []
    bf = inputs.body_fat_percent
    if not factors.is_surplus and factors.body_fat_factor < 0.9:
        recs.append(BodyCompRecommendation(
            category=RecommendationCategory.GENERAL,
            priority=RecommendationPriority.HIGH if bf < 12 else RecommendationPriority.MEDIUM,
            title="Expect slower progress",
            description=(
                f"At {bf:.1f}% body fat the body defends its remaining fat. Smaller "
                "deficits, diet breaks or refeeds help sustainability."
            ),
            impact="Sustainability and lean retention",
        ))
    if inputs.training_age is TrainingAge.BEGINNER and bf > 18:
        recs.append(BodyCompRecommendation(
            category=RecommendationCategory.GENERAL,
            priority=RecommendationPriority.LOW,
            title="Leverage the beginner advantage",
            description=(
                "New lifters with higher body fat can often gain muscle while losing fat. "
                "Focus on progressive overload and adequate protein."
            ),
            impact="Potential for simultaneous muscle gain and fat loss",
        ))
    if not factors.is_surplus and factors.final_p_ratio < CONSISTENCY_THRESHOLD:
        recs.append(BodyCompRecommendation(
            category=RecommendationCategory.GENERAL,
            priority=RecommendationPriority.MEDIUM,
            title="Focus on consistency",
            description=(
                "Several factors are working against you. Pick the highest-impact change, "
                "usually protein, and make it consistent before adding more."
            ),
            impact="Sustainable improvement over time",
        ))
    return recs


def generate_recommendations(
    factors: PartitionRatioFactors,
    inputs: PRatioInputs,
) -> list[BodyCompRecommendation]:
    """Recommendations for the factors holding the ratio back.

    Args:
        factors: Output of calculate_p_ratio for ``inputs``
        inputs: Covariates the factors were computed from

    Returns:
        Recommendations sorted by priority (stable within a priority)
    """
    recs = [
        rec
        for rec in (_protein(factors, inputs), _training(factors, inputs), _deficit(factors, inputs))
        if rec is not None
    ]
    recs.extend(_general(factors, inputs))
    return sorted(recs, key=lambda r: r.priority.rank)


def top_recommendation(
    factors: PartitionRatioFactors,
    inputs: PRatioInputs,
) -> Optional[BodyCompRecommendation]:
    recs = generate_recommendations(factors, inputs)
    return recs[0] if recs else None


def summarize_recommendations(recs: Sequence[BodyCompRecommendation]) -> str:
    """One line for dashboards and CLI summaries."""
    if not recs:
        return "Your current approach is well set up for body composition."
    high = [r.title.lower() for r in recs if r.priority is RecommendationPriority.HIGH]
    if high:
        return f"Focus on: {' and '.join(high[:2])}"
    medium = [r.title.lower() for r in recs if r.priority is RecommendationPriority.MEDIUM]
    if medium:
        return f"Consider: {medium[0]}"
    return "Minor optimizations available"


def estimate_improvement_potential(factors: PartitionRatioFactors) -> ImprovementPotential:
    """Ratio reachable if protein, training and deficit were optimal.

    Only meaningful in a deficit; a surplus reports no potential.
    """
    current = factors.final_p_ratio
    if factors.is_surplus:
        return ImprovementPotential(current, current, 0)
    potential = current
    for name, value in (
        ("protein", factors.protein_factor),
        ("training", factors.training_factor),
        ("deficit", factors.deficit_factor),
    ):
        if value < OPTIMAL_FACTORS[name]:
            potential *= OPTIMAL_FACTORS[name] / value
    potential = min(1.0, potential)
    return ImprovementPotential(current, potential, round((potential - current) / current * 100))


def recommendation_to_dict(rec: BodyCompRecommendation) -> dict[str, Any]:
    return {
        "category": rec.category.value,
        "priority": rec.priority.value,
        "title": rec.title,
        "description": rec.description,
        "impact": rec.impact,
        "current_value": rec.current_value,
        "target_value": rec.target_value,
    }
