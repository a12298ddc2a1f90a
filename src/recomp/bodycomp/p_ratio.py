"""Partition ratio (P-ratio) model.

P-ratio is the fraction of a body-mass change that is fat; the rest is lean
tissue. On a deficit a P-ratio of 0.80 means 80% of the weight lost is fat.
Better lean retention (more protein, more training volume, a smaller
deficit) therefore raises the P-ratio of a loss.

Each covariate contributes a bounded factor against the population baseline.
Factors are multiplied together and the result is clamped to sex- and
enhancement-specific bounds that lie strictly inside (0, 1).

In a surplus the model predicts the lean share of the gain instead and
reports ``1 - lean share`` as the fat fraction.
"""

from __future__ import annotations

from typing import Optional

from recomp.bodycomp.models import PartitionRatioFactors, PRatioInputs, TrainingAge

# Population baseline for a moderate deficit with training
BASE_P_RATIO = 0.80
# Population lean share of a surplus for an intermediate trainee
BASE_LEAN_GAIN_SHARE = 0.40

BASE_UNCERTAINTY = 0.12
NO_HISTORY_UNCERTAINTY = 1.3
EXTREME_UNCERTAINTY = 1.2
BEGINNER_UNCERTAINTY = 1.15
SURPLUS_UNCERTAINTY = 1.25

# (sex, enhanced) -> (low, high)
P_RATIO_BOUNDS = {
    ("male", False): (0.40, 0.95),
    ("female", False): (0.35, 0.93),
    ("male", True): (0.50, 0.98),
    ("female", True): (0.45, 0.97),
}

# Threshold tables, checked top to bottom: (lower bound, factor)
PROTEIN_FACTORS = ((2.2, 1.08), (1.8, 1.04), (1.6, 1.00), (1.2, 0.95))
PROTEIN_FLOOR_FACTOR = 0.88
TRAINING_FACTORS = ((15, 1.06), (10, 1.02), (5, 0.96))
TRAINING_FLOOR_FACTOR = 0.88
# Deficit uses upper bounds: (at most, factor)
DEFICIT_FACTORS = ((15, 1.04), (20, 1.00), (25, 0.95), (30, 0.88))
DEFICIT_CEILING_FACTOR = 0.80
BODY_FAT_FACTORS = {
    "male": ((20, 1.08), (15, 1.02), (12, 0.95), (10, 0.85)),
    "female": ((28, 1.08), (22, 1.02), (18, 0.95), (15, 0.85)),
}
BODY_FAT_FLOOR_FACTOR = 0.72
ENHANCED_FACTOR = 1.15


def _tiered(value: float, table: tuple[tuple[float, float], ...], floor: float) -> float:
    for threshold, factor in table:
        if value >= threshold:
            return factor
    return floor


def protein_factor(protein_per_kg: float) -> float:
    """Above ~1.6 g/kg protein lean retention improves."""
    return _tiered(protein_per_kg, PROTEIN_FACTORS, PROTEIN_FLOOR_FACTOR)


def training_factor(weekly_sets: float) -> float:
    return _tiered(weekly_sets, TRAINING_FACTORS, TRAINING_FLOOR_FACTOR)


def deficit_factor(deficit_percent: float) -> float:
    """Larger deficits shift more of the loss to lean tissue."""
    for ceiling, factor in DEFICIT_FACTORS:
        if deficit_percent <= ceiling:
            return factor
    return DEFICIT_CEILING_FACTOR


def body_fat_factor(body_fat_percent: float, sex: str) -> float:
    """Leaner bodies defend fat stores harder."""
    return _tiered(body_fat_percent, BODY_FAT_FACTORS[sex], BODY_FAT_FLOOR_FACTOR)


def training_age_factor(training_age: TrainingAge, body_fat_percent: float) -> float:
    if training_age is TrainingAge.BEGINNER:
        return 1.10 if body_fat_percent > 18 else 1.05
    if training_age is TrainingAge.ADVANCED:
        return 0.98
    return 1.0


def p_ratio_bounds(sex: str, is_enhanced: bool) -> tuple[float, float]:
    return P_RATIO_BOUNDS[(sex, is_enhanced)]


def _lean_gain_share(inputs: PRatioInputs) -> float:
    """Lean share of a surplus."""
    share = BASE_LEAN_GAIN_SHARE
    if inputs.training_age is TrainingAge.BEGINNER:
        share = 0.55
    elif inputs.training_age is TrainingAge.ADVANCED:
        share = 0.30
    if inputs.is_enhanced:
        share = min(0.75, share * 1.5)

    if inputs.protein_per_kg >= 2.0:
        share *= 1.1
    elif inputs.protein_per_kg < 1.4:
        share *= 0.85

    if inputs.avg_weekly_sets < 5:
        share *= 0.5
    elif inputs.avg_weekly_sets >= 20:
        share *= 1.1

    surplus = abs(inputs.deficit_percent)
    if surplus > 15:
        share *= 0.85
    elif surplus < 5:
        share *= 1.1
    return min(0.8, max(0.2, share))


def calculate_p_ratio(
    inputs: PRatioInputs,
    modifiers: Optional[dict[str, float]] = None,
) -> PartitionRatioFactors:
    """
    Predict the fat fraction of an upcoming mass change.

    Args:
        inputs: Current nutrition, training and body-composition covariates
        modifiers: Optional personal multipliers keyed by "protein",
            "training" and "deficit" (1.0 = no adjustment)

    Returns:
        PartitionRatioFactors with the clamped ratio and its uncertainty range
    """
    modifiers = modifiers or {}
    low, high = p_ratio_bounds(inputs.sex, inputs.is_enhanced)

    p_factor = protein_factor(inputs.protein_per_kg) * modifiers.get("protein", 1.0)
    t_factor = training_factor(inputs.avg_weekly_sets) * modifiers.get("training", 1.0)
    d_factor = deficit_factor(max(inputs.deficit_percent, 0.0)) * modifiers.get("deficit", 1.0)
    bf_factor = body_fat_factor(inputs.body_fat_percent, inputs.sex)
    age_factor = training_age_factor(inputs.training_age, inputs.body_fat_percent)
    enhanced_factor = ENHANCED_FACTOR if inputs.is_enhanced else 1.0

    if inputs.is_surplus:
        raw = 1.0 - _lean_gain_share(inputs)
        base = 1.0 - BASE_LEAN_GAIN_SHARE
    else:
        base = BASE_P_RATIO
        raw = (
            base * p_factor * t_factor * d_factor * bf_factor * age_factor * enhanced_factor
        )
    final = min(high, max(low, raw))

    uncertainty = BASE_UNCERTAINTY
    if not inputs.personal_history:
        uncertainty *= NO_HISTORY_UNCERTAINTY
    if inputs.body_fat_percent < 12 or inputs.deficit_percent > 25:
        uncertainty *= EXTREME_UNCERTAINTY
    if inputs.training_age is TrainingAge.BEGINNER:
        uncertainty *= BEGINNER_UNCERTAINTY
    if inputs.is_surplus:
        uncertainty *= SURPLUS_UNCERTAINTY

    return PartitionRatioFactors(
        base_ratio=base,
        protein_factor=p_factor,
        training_factor=t_factor,
        deficit_factor=d_factor,
        body_fat_factor=bf_factor,
        age_factor=age_factor,
        enhanced_factor=enhanced_factor,
        final_p_ratio=final,
        confidence_range=(max(low, final - uncertainty), min(high, final + uncertainty)),
        is_surplus=inputs.is_surplus,
    )


def describe_p_ratio(p_ratio: float) -> str:
    if p_ratio >= 0.9:
        return "Excellent - almost all weight lost is fat"
    if p_ratio >= 0.8:
        return "Good - mostly fat with minimal lean loss"
    if p_ratio >= 0.7:
        return "Fair - some lean loss expected"
    if p_ratio >= 0.6:
        return "Poor - significant lean loss expected"
    return "Very poor - high risk of lean loss"


def explain_p_ratio_factors(factors: PartitionRatioFactors) -> list[str]:
    """Plain-language reasons behind a P-ratio."""
    explanations = []
    if factors.is_surplus:
        explanations.append("In a surplus the ratio is the fat share of the weight gained")
    if factors.protein_factor >= 1.04:
        explanations.append("High protein intake is supporting lean retention")
    elif factors.protein_factor < 0.96:
        explanations.append("More protein would help preserve lean mass")
    if factors.training_factor >= 1.04:
        explanations.append("Training volume gives a strong lean-retention signal")
    elif factors.training_factor < 0.96:
        explanations.append("More training volume would help preserve lean mass")
    if factors.deficit_factor >= 1.02:
        explanations.append("A conservative deficit favours fat loss")
    elif factors.deficit_factor < 0.95:
        explanations.append("An aggressive deficit may increase lean loss")
    if factors.body_fat_factor < 0.9:
        explanations.append("Lower body fat makes lean retention harder")
    if factors.enhanced_factor > 1.0:
        explanations.append("Enhanced status improves partitioning")
    return explanations
