"""Serialization utilities for estimates and predictions.

Estimates are stored as a JSON payload (history inline) and printed by the
CLI's ``--json`` mode. ``deserialize_estimate(serialize_estimate(e)) == e``
holds for both plain and activity-augmented estimates.
"""

from __future__ import annotations

from dataclasses import fields
from datetime import date
from typing import Any

from recomp.tracking.models import (
    Confidence,
    EnhancedTDEEEstimate,
    EstimateSource,
    HistoryPoint,
    TDEEEstimate,
    WeightPrediction,
)

_ENHANCED_FIELDS = tuple(
    f.name for f in fields(EnhancedTDEEEstimate) if f.name not in {f.name for f in fields(TDEEEstimate)}
)


def serialize_estimate(estimate: TDEEEstimate) -> dict[str, Any]:
    """Convert an estimate to a JSON-serializable dict.

    Args:
        estimate: Plain or enhanced estimate

    Returns:
        Dictionary accepted by :func:`deserialize_estimate`
    """
    data: dict[str, Any] = {
        "kind": "enhanced" if isinstance(estimate, EnhancedTDEEEstimate) else "baseline",
        "burn_rate_per_kg": estimate.burn_rate_per_kg,
        "estimated_tdee": estimate.estimated_tdee,
        "current_weight": estimate.current_weight,
        "confidence": estimate.confidence.value,
        "confidence_score": estimate.confidence_score,
        "standard_error": estimate.standard_error,
        "data_points_used": estimate.data_points_used,
        "window_days": estimate.window_days,
        "source": estimate.source.value,
        "r_squared": estimate.r_squared,
        "estimate_history": [
            {"date": h.date.isoformat(), "tdee": h.tdee, "confidence_score": h.confidence_score}
            for h in estimate.estimate_history
        ],
    }
    if isinstance(estimate, EnhancedTDEEEstimate):
        for name in _ENHANCED_FIELDS:
            data[name] = getattr(estimate, name)
    return data


def deserialize_estimate(data: dict[str, Any]) -> TDEEEstimate:
    """Rebuild an estimate from :func:`serialize_estimate` output."""
    kwargs: dict[str, Any] = {
        "burn_rate_per_kg": float(data["burn_rate_per_kg"]),
        "estimated_tdee": float(data["estimated_tdee"]),
        "current_weight": float(data["current_weight"]),
        "confidence": Confidence(data["confidence"]),
        "confidence_score": float(data["confidence_score"]),
        "standard_error": float(data["standard_error"]),
        "data_points_used": int(data["data_points_used"]),
        "window_days": int(data["window_days"]),
        "source": EstimateSource(data["source"]),
        "r_squared": data.get("r_squared"),
        "estimate_history": tuple(
            HistoryPoint(date.fromisoformat(h["date"]), float(h["tdee"]), float(h["confidence_score"]))
            for h in data.get("estimate_history", [])
        ),
    }
    if data.get("kind") == "enhanced":
        for name in _ENHANCED_FIELDS:
            if name in data:
                kwargs[name] = data[name]
        return EnhancedTDEEEstimate(**kwargs)
    return TDEEEstimate(**kwargs)


def serialize_prediction(prediction: WeightPrediction) -> dict[str, Any]:
    return {
        "horizon_days": prediction.horizon_days,
        "predicted_weight": round(prediction.predicted_weight, 2),
        "lower_bound": round(prediction.lower_bound, 2),
        "upper_bound": round(prediction.upper_bound, 2),
        "target_calories": prediction.target_calories,
    }
