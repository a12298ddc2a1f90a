"""Body composition predictions.

A prediction splits a projected mass change into fat and lean parts using a
P-ratio that blends the covariate model with the user's calibrated value.
Ranges come from the model's uncertainty band, so predictions are always
shown with optimistic, expected and pessimistic cases.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, Optional, Sequence

from recomp.bodycomp.calibration import analyze_scan_pair
from recomp.bodycomp.models import (
    BodyCompPrediction,
    DEXAScan,
    MassRange,
    PartitionRatioFactors,
    PredictionAccuracy,
    PredictionAssumptions,
    PredictionConfidence,
    PRatioInputs,
)
from recomp.bodycomp.p_ratio import calculate_p_ratio, p_ratio_bounds
from recomp.bodycomp.profile import UserBodyCompProfile
from recomp.tracking.models import TDEEEstimate
from recomp.tracking.projection import predict_weight

# Changes below this (kg) count as small for confidence purposes
SMALL_CHANGE_KG = 5.0
DEFAULT_SCENARIO_DELTAS = (-2.5, -5.0, -7.5, -10.0)


def blend_p_ratio(
    model_ratio: float,
    profile: UserBodyCompProfile,
    sex: str = "male",
) -> tuple[float, float]:
    """Weight the learned ratio by calibration confidence.

    Returns:
        (blended ratio, weight given to the learned value)
    """
    if profile.learned_p_ratio is None or profile.p_ratio_confidence <= 0:
        return model_ratio, 0.0
    weight = min(max(profile.p_ratio_confidence, 0.0), 1.0)
    blended = weight * profile.learned_p_ratio + (1 - weight) * model_ratio
    low, high = p_ratio_bounds(sex, profile.is_enhanced)
    return min(high, max(low, blended)), weight


def _confidence_level(
    profile: UserBodyCompProfile,
    factors: PartitionRatioFactors,
    change_kg: float,
) -> PredictionConfidence:
    spread = factors.confidence_range[1] - factors.confidence_range[0]
    has_personal_data = profile.p_ratio_data_points >= 2
    small = abs(change_kg) < SMALL_CHANGE_KG
    if has_personal_data and small and spread < 0.15:
        return PredictionConfidence.REASONABLE
    if has_personal_data or (small and spread < 0.2):
        return PredictionConfidence.MODERATE
    return PredictionConfidence.LOW


def _confidence_factors(profile: UserBodyCompProfile, factors: PartitionRatioFactors) -> list[str]:
    messages = ["Body composition predictions carry inherent uncertainty"]
    if profile.p_ratio_data_points == 0:
        messages.append("No personal scan history yet; using population averages")
    elif profile.p_ratio_data_points == 1:
        messages.append("One scan comparison so far; predictions improve with more scans")
    else:
        messages.append(f"Calibrated from {profile.p_ratio_data_points} scan comparisons")
    if factors.is_surplus:
        messages.append("Weight gain partitioning varies a lot between individuals")
    if factors.body_fat_factor < 0.9:
        messages.append("Already lean; partitioning typically worsens")
    if factors.deficit_factor < 0.92:
        messages.append("Aggressive deficit may increase lean loss")
    if factors.protein_factor < 0.96:
        messages.append("Higher protein intake may improve results")
    if factors.training_factor < 0.96:
        messages.append("More training volume may preserve more lean mass")
    return messages


def predict_body_composition(
    current_scan: DEXAScan,
    target_weight: float,
    factors: PartitionRatioFactors,
    profile: UserBodyCompProfile,
    target_date: Optional[date] = None,
    inputs: Optional[PRatioInputs] = None,
    sex: str = "male",
) -> BodyCompPrediction:
    """
    Split the change from the current scan to a target weight.

    Args:
        current_scan: Latest scan (kg)
        target_weight: Target body mass (kg)
        factors: Covariate model output
        profile: Calibration state
        target_date: When the target weight is expected
        inputs: Covariates, recorded in the assumptions snapshot
        sex: Biological sex for the ratio bounds

    Returns:
        BodyCompPrediction with optimistic, expected and pessimistic cases
    """
    change = target_weight - current_scan.total_mass_kg
    ratio, weight = blend_p_ratio(factors.final_p_ratio, profile, sex)
    low, high = factors.confidence_range
    # Keep the band around the blended ratio
    shift = ratio - factors.final_p_ratio
    lo_bound, hi_bound = p_ratio_bounds(sex, profile.is_enhanced)
    low = min(hi_bound, max(lo_bound, low + shift))
    high = min(hi_bound, max(lo_bound, high + shift))

    # Optimistic means least fat kept: a higher ratio on a loss, a lower one on a gain
    if change < 0:
        best, worst = high, low
    else:
        best, worst = low, high

    def split(p: float) -> tuple[float, float, float]:
        fat = current_scan.fat_mass_kg + change * p
        lean = current_scan.lean_mass_kg + change * (1 - p)
        return fat, lean, fat / target_weight * 100

    exp_fat, exp_lean, exp_bf = split(ratio)
    opt_fat, opt_lean, opt_bf = split(best)
    pes_fat, pes_lean, pes_bf = split(worst)

    assumptions = PredictionAssumptions(
        avg_daily_deficit=inputs.avg_daily_deficit_kcal if inputs else 0.0,
        avg_daily_protein=inputs.avg_daily_protein_g if inputs else 0.0,
        avg_weekly_volume=inputs.avg_weekly_sets if inputs else 0.0,
        p_ratio_used=ratio,
        model_p_ratio=factors.final_p_ratio,
        learned_p_ratio=profile.learned_p_ratio,
        calibration_weight=weight,
    )
    return BodyCompPrediction(
        target_date=target_date,
        target_weight=target_weight,
        predicted_fat_mass=exp_fat,
        predicted_lean_mass=exp_lean,
        predicted_body_fat_percent=exp_bf,
        fat_mass_range=MassRange(opt_fat, exp_fat, pes_fat),
        lean_mass_range=MassRange(opt_lean, exp_lean, pes_lean),
        body_fat_percent_range=MassRange(opt_bf, exp_bf, pes_bf),
        confidence_level=_confidence_level(profile, factors, change),
        confidence_factors=tuple(_confidence_factors(profile, factors)),
        assumptions=assumptions,
        start_scan_id=current_scan.scan_id,
        created_on=current_scan.scan_date,
    )


def forecast_body_composition(
    current_scan: DEXAScan,
    profile: UserBodyCompProfile,
    inputs: PRatioInputs,
    estimate: TDEEEstimate,
    target_calories: float,
    target_date: date,
    current_weight: Optional[float] = None,
) -> BodyCompPrediction:
    """Predict composition on a date from planned intake.

    The target weight comes from the weight projector; the partition from
    the blended P-ratio.

    Args:
        current_scan: Latest scan
        profile: Calibration state
        inputs: Current covariates
        estimate: TDEE estimate to project with
        target_calories: Planned daily intake
        target_date: Date of the prediction
        current_weight: Starting mass (defaults to the estimate's current weight)

    Returns:
        BodyCompPrediction
    """
    start = current_weight if current_weight is not None else estimate.current_weight
    horizon = max((target_date - current_scan.scan_date).days, 0)
    projected = predict_weight(start, estimate, target_calories, horizon)
    # Apply the projected change to the scan's mass
    target_weight = current_scan.total_mass_kg + (projected.predicted_weight - start)
    factors = calculate_p_ratio(
        _with_history(inputs, profile), profile.modifiers
    )
    return predict_body_composition(
        current_scan, target_weight, factors, profile, target_date, inputs, inputs.sex
    )


def _with_history(inputs: PRatioInputs, profile: UserBodyCompProfile) -> PRatioInputs:
    if inputs.personal_history or not profile.p_ratio_data_points:
        return inputs
    return replace(inputs, personal_history=profile.personal_history)


def generate_weight_scenarios(
    current_scan: DEXAScan,
    factors: PartitionRatioFactors,
    profile: UserBodyCompProfile,
    deltas: Sequence[float] = DEFAULT_SCENARIO_DELTAS,
    sex: str = "male",
) -> list[BodyCompPrediction]:
    """Predictions for several target weights relative to the current scan."""
    return [
        predict_body_composition(
            current_scan, current_scan.total_mass_kg + delta, factors, profile, sex=sex
        )
        for delta in deltas
    ]


def compare_prediction_to_scan(
    prediction: BodyCompPrediction,
    start_scan: DEXAScan,
    actual_scan: DEXAScan,
) -> PredictionAccuracy:
    """Back-test a stored prediction against the scan that followed it."""
    pair = analyze_scan_pair(start_scan, actual_scan)
    bf_range = prediction.body_fat_percent_range
    low = min(bf_range.optimistic, bf_range.pessimistic)
    high = max(bf_range.optimistic, bf_range.pessimistic)
    return PredictionAccuracy(
        predicted_body_fat=prediction.predicted_body_fat_percent,
        actual_body_fat=actual_scan.body_fat_percent,
        predicted_fat_mass=prediction.predicted_fat_mass,
        actual_fat_mass=actual_scan.fat_mass_kg,
        predicted_lean_mass=prediction.predicted_lean_mass,
        actual_lean_mass=actual_scan.lean_mass_kg,
        predicted_p_ratio=prediction.assumptions.p_ratio_used,
        actual_p_ratio=pair.calculated_p_ratio if abs(pair.weight_change) >= 1.0 else None,
        within_range=low <= actual_scan.body_fat_percent <= high,
    )


def prediction_to_dict(prediction: BodyCompPrediction) -> dict[str, Any]:
    """JSON-serializable view of a prediction (stored payload and ``--json`` output)."""

    def mass_range(r: MassRange) -> dict[str, float]:
        return {
            "optimistic": round(r.optimistic, 2),
            "expected": round(r.expected, 2),
            "pessimistic": round(r.pessimistic, 2),
        }

    a = prediction.assumptions
    return {
        "target_date": prediction.target_date.isoformat() if prediction.target_date else None,
        "target_weight": round(prediction.target_weight, 2),
        "predicted_fat_mass": round(prediction.predicted_fat_mass, 2),
        "predicted_lean_mass": round(prediction.predicted_lean_mass, 2),
        "predicted_body_fat_percent": round(prediction.predicted_body_fat_percent, 2),
        "fat_mass_range": mass_range(prediction.fat_mass_range),
        "lean_mass_range": mass_range(prediction.lean_mass_range),
        "body_fat_percent_range": mass_range(prediction.body_fat_percent_range),
        "confidence_level": prediction.confidence_level.value,
        "confidence_factors": list(prediction.confidence_factors),
        "assumptions": {
            "avg_daily_deficit": a.avg_daily_deficit,
            "avg_daily_protein": a.avg_daily_protein,
            "avg_weekly_volume": a.avg_weekly_volume,
            "p_ratio_used": round(a.p_ratio_used, 4),
            "model_p_ratio": round(a.model_p_ratio, 4),
            "learned_p_ratio": a.learned_p_ratio,
            "calibration_weight": round(a.calibration_weight, 4),
        },
        "start_scan_id": prediction.start_scan_id,
        "created_on": prediction.created_on.isoformat() if prediction.created_on else None,
    }


def prediction_from_dict(data: dict[str, Any]) -> BodyCompPrediction:
    """Rebuild a stored prediction payload written by ``prediction_to_dict``."""

    def mass_range(d: dict[str, float]) -> MassRange:
        return MassRange(d["optimistic"], d["expected"], d["pessimistic"])

    a = data["assumptions"]
    return BodyCompPrediction(
        target_date=date.fromisoformat(data["target_date"]) if data.get("target_date") else None,
        target_weight=data["target_weight"],
        predicted_fat_mass=data["predicted_fat_mass"],
        predicted_lean_mass=data["predicted_lean_mass"],
        predicted_body_fat_percent=data["predicted_body_fat_percent"],
        fat_mass_range=mass_range(data["fat_mass_range"]),
        lean_mass_range=mass_range(data["lean_mass_range"]),
        body_fat_percent_range=mass_range(data["body_fat_percent_range"]),
        confidence_level=PredictionConfidence(data["confidence_level"]),
        confidence_factors=tuple(data.get("confidence_factors", ())),
        assumptions=PredictionAssumptions(
            avg_daily_deficit=a["avg_daily_deficit"],
            avg_daily_protein=a["avg_daily_protein"],
            avg_weekly_volume=a["avg_weekly_volume"],
            p_ratio_used=a["p_ratio_used"],
            model_p_ratio=a["model_p_ratio"],
            learned_p_ratio=a.get("learned_p_ratio"),
            calibration_weight=a.get("calibration_weight", 0.0),
        ),
        start_scan_id=data.get("start_scan_id"),
        created_on=date.fromisoformat(data["created_on"]) if data.get("created_on") else None,
    )


def backtest_stored_prediction(
    payload: Optional[dict[str, Any]],
    scans: Sequence[DEXAScan],
    new_scan: DEXAScan,
) -> Optional[PredictionAccuracy]:
    """Compare the active prediction with a scan taken after its start scan.

    Returns None when there is no stored prediction, its start scan is gone,
    or ``new_scan`` does not follow it.
    """
    if payload is None:
        return None
    prediction = prediction_from_dict(payload)
    start = next((s for s in scans if s.scan_id == prediction.start_scan_id), None)
    if start is None or new_scan.scan_date <= start.scan_date:
        return None
    return compare_prediction_to_scan(prediction, start, new_scan)


def accuracy_to_dict(accuracy: PredictionAccuracy) -> dict[str, Any]:
    return {
        "predicted_body_fat": round(accuracy.predicted_body_fat, 2),
        "actual_body_fat": round(accuracy.actual_body_fat, 2),
        "body_fat_error": round(accuracy.body_fat_error, 2),
        "fat_mass_error": round(accuracy.fat_mass_error, 2),
        "predicted_p_ratio": round(accuracy.predicted_p_ratio, 4),
        "actual_p_ratio": (
            round(accuracy.actual_p_ratio, 4) if accuracy.actual_p_ratio is not None else None
        ),
        "within_range": accuracy.within_range,
    }
