"""Tests for estimate serialization."""

from __future__ import annotations

import json
from datetime import date

from recomp.tracking.models import (
    Confidence,
    EnhancedTDEEEstimate,
    EstimateSource,
    HistoryPoint,
    TDEEEstimate,
    WeightPrediction,
)
from recomp.tracking.serialization import (
    deserialize_estimate,
    serialize_estimate,
    serialize_prediction,
)

HISTORY = (HistoryPoint(date(2025, 1, 1), 2450.0, 0.4), HistoryPoint(date(2025, 1, 8), 2500.0, 0.6))


class TestEstimateSerialization:
    """Tests for estimate payloads."""

    def test_baseline_roundtrip_through_json(self) -> None:
        estimate = TDEEEstimate(
            burn_rate_per_kg=31.25,
            estimated_tdee=2500.0,
            current_weight=80.0,
            confidence=Confidence.STABILIZING,
            confidence_score=0.55,
            standard_error=180.0,
            data_points_used=14,
            window_days=21,
            source=EstimateSource.REGRESSION,
            estimate_history=HISTORY,
            r_squared=0.25,
        )
        payload = json.loads(json.dumps(serialize_estimate(estimate)))
        assert payload["kind"] == "baseline"
        assert payload["confidence"] == "stabilizing"
        assert deserialize_estimate(payload) == estimate

    def test_enhanced_keeps_activity_fields(self) -> None:
        estimate = EnhancedTDEEEstimate(
            burn_rate_per_kg=34.0,
            estimated_tdee=2720.0,
            current_weight=80.0,
            confidence=Confidence.STABLE,
            confidence_score=0.8,
            standard_error=120.0,
            data_points_used=30,
            window_days=35,
            source=EstimateSource.REGRESSION,
            r_squared=0.6,
            base_burn_rate=30.0,
            step_burn_rate=0.04,
            workout_calorie_multiplier=0.9,
            average_steps=8000.0,
            average_workout_calories=150.0,
            iterations=420,
            outliers_excluded=2,
        )
        payload = json.loads(json.dumps(serialize_estimate(estimate)))
        assert payload["kind"] == "enhanced"
        restored = deserialize_estimate(payload)
        assert isinstance(restored, EnhancedTDEEEstimate)
        assert restored == estimate

    def test_formula_estimate_has_no_r_squared(self) -> None:
        estimate = TDEEEstimate(
            burn_rate_per_kg=30.0,
            estimated_tdee=2400.0,
            current_weight=80.0,
            confidence=Confidence.UNSTABLE,
            confidence_score=0.2,
            standard_error=300.0,
            data_points_used=0,
            window_days=0,
            source=EstimateSource.FORMULA,
        )
        payload = serialize_estimate(estimate)
        assert payload["r_squared"] is None
        assert payload["estimate_history"] == []
        assert deserialize_estimate(payload).source is EstimateSource.FORMULA


class TestPredictionSerialization:
    def test_rounded(self) -> None:
        prediction = WeightPrediction(14, 79.12345, 78.5561, 79.6911, 2000.0)
        assert serialize_prediction(prediction) == {
            "horizon_days": 14,
            "predicted_weight": 79.12,
            "lower_bound": 78.56,
            "upper_bound": 79.69,
            "target_calories": 2000.0,
        }
