"""Tests for body composition predictions."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import date, timedelta

import pytest

from recomp.bodycomp.models import DEXAScan, PredictionConfidence, PRatioInputs
from recomp.bodycomp.p_ratio import calculate_p_ratio
from recomp.bodycomp.prediction import (
    backtest_stored_prediction,
    blend_p_ratio,
    compare_prediction_to_scan,
    forecast_body_composition,
    generate_weight_scenarios,
    predict_body_composition,
    prediction_from_dict,
    prediction_to_dict,
)
from recomp.bodycomp.profile import UserBodyCompProfile
from recomp.tracking.models import Confidence, EstimateSource, TDEEEstimate

D0 = date(2025, 1, 6)
SCAN = DEXAScan.create(D0, 80.0, 16.0, 61.0, "kg", 3.0, scan_id=5)
INPUTS = PRatioInputs(
    avg_daily_protein_g=160.0,
    body_mass_kg=80.0,
    avg_weekly_sets=12.0,
    deficit_percent=20.0,
    body_fat_percent=20.0,
    avg_daily_deficit_kcal=-500.0,
)
EMPTY = UserBodyCompProfile(user_id=1)


class TestBlendPRatio:
    def test_without_calibration(self) -> None:
        assert blend_p_ratio(0.82, EMPTY) == (0.82, 0.0)

    def test_weighted_by_confidence(self) -> None:
        profile = replace(EMPTY, learned_p_ratio=0.6, p_ratio_confidence=0.5, p_ratio_data_points=2)
        ratio, weight = blend_p_ratio(0.8, profile)
        assert ratio == pytest.approx(0.7)
        assert weight == 0.5

    def test_blend_respects_bounds(self) -> None:
        profile = replace(EMPTY, learned_p_ratio=0.1, p_ratio_confidence=0.9, p_ratio_data_points=4)
        ratio, _ = blend_p_ratio(0.8, profile, sex="female")
        assert ratio == 0.35


class TestPredictBodyComposition:
    """Tests for predict_body_composition."""

    def test_loss_split(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        p = factors.final_p_ratio
        prediction = predict_body_composition(SCAN, 75.0, factors, EMPTY, inputs=INPUTS)
        assert prediction.predicted_fat_mass == pytest.approx(16.0 - 5 * p)
        assert prediction.predicted_lean_mass == pytest.approx(61.0 - 5 * (1 - p))
        assert prediction.predicted_body_fat_percent == pytest.approx(
            prediction.predicted_fat_mass / 75.0 * 100
        )
        assert prediction.start_scan_id == 5
        assert prediction.created_on == D0

    def test_compartments_add_up(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        prediction = predict_body_composition(SCAN, 74.0, factors, EMPTY)
        total = prediction.predicted_fat_mass + prediction.predicted_lean_mass + SCAN.bone_mineral_kg
        assert total == pytest.approx(74.0)

    def test_loss_ranges_ordered(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        prediction = predict_body_composition(SCAN, 75.0, factors, EMPTY)
        fat = prediction.fat_mass_range
        lean = prediction.lean_mass_range
        assert fat.optimistic < fat.expected < fat.pessimistic
        assert lean.optimistic > lean.expected > lean.pessimistic
        bf = prediction.body_fat_percent_range
        assert bf.optimistic < bf.expected < bf.pessimistic

    def test_gain_ranges_ordered(self) -> None:
        factors = calculate_p_ratio(replace(INPUTS, deficit_percent=-10.0))
        prediction = predict_body_composition(SCAN, 85.0, factors, EMPTY)
        fat = prediction.fat_mass_range
        assert fat.optimistic < fat.expected < fat.pessimistic
        assert prediction.predicted_lean_mass > SCAN.lean_mass_kg

    def test_calibration_shifts_prediction(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        calibrated = replace(EMPTY, learned_p_ratio=0.6, p_ratio_confidence=0.5, p_ratio_data_points=2)
        plain = predict_body_composition(SCAN, 75.0, factors, EMPTY)
        blended = predict_body_composition(SCAN, 75.0, factors, calibrated)
        assert blended.predicted_fat_mass > plain.predicted_fat_mass
        assert blended.assumptions.calibration_weight == 0.5
        assert blended.assumptions.learned_p_ratio == 0.6
        assert blended.assumptions.model_p_ratio == factors.final_p_ratio

    def test_confidence_never_high(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        large = predict_body_composition(SCAN, 70.0, factors, EMPTY)
        assert large.confidence_level is PredictionConfidence.LOW
        calibrated = replace(EMPTY, learned_p_ratio=0.8, p_ratio_confidence=0.5, p_ratio_data_points=3)
        small = predict_body_composition(SCAN, 78.0, factors, calibrated)
        assert small.confidence_level is PredictionConfidence.MODERATE

    def test_confidence_factors_mention_history(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        prediction = predict_body_composition(SCAN, 75.0, factors, EMPTY)
        assert any("No personal scan history" in f for f in prediction.confidence_factors)

    def test_summary(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        prediction = predict_body_composition(SCAN, 75.0, factors, EMPTY, target_date=D0 + timedelta(days=70))
        summary = prediction.summary()
        assert "Target weight: 75.0 kg by 2025-03-17" in summary
        assert "Confidence: low" in summary


class TestForecast:
    def test_uses_projected_weight(self) -> None:
        estimate = TDEEEstimate(
            burn_rate_per_kg=2500.0 / 80.0,
            estimated_tdee=2500.0,
            current_weight=80.0,
            confidence=Confidence.STABLE,
            confidence_score=0.8,
            standard_error=154.0,
            data_points_used=25,
            window_days=30,
            source=EstimateSource.REGRESSION,
            r_squared=0.5,
        )
        prediction = forecast_body_composition(
            SCAN, EMPTY, INPUTS, estimate, 2000.0, D0 + timedelta(days=28)
        )
        assert prediction.target_weight == pytest.approx(80.0 - 28 * 500 / 7700)
        assert prediction.target_date == D0 + timedelta(days=28)
        assert prediction.predicted_fat_mass < SCAN.fat_mass_kg


class TestScenarios:
    def test_default_deltas(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        scenarios = generate_weight_scenarios(SCAN, factors, EMPTY)
        assert [s.target_weight for s in scenarios] == [77.5, 75.0, 72.5, 70.0]
        body_fat = [s.predicted_body_fat_percent for s in scenarios]
        assert body_fat == sorted(body_fat, reverse=True)


class TestCompareToScan:
    def test_back_test(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        prediction = predict_body_composition(SCAN, 75.0, factors, EMPTY)
        actual = DEXAScan.create(D0 + timedelta(days=84), 75.0, 12.0, 60.0, "kg", 3.0)
        accuracy = compare_prediction_to_scan(prediction, SCAN, actual)
        assert accuracy.actual_p_ratio == pytest.approx(0.8)
        assert accuracy.actual_body_fat == pytest.approx(16.0)
        assert accuracy.within_range
        assert accuracy.fat_mass_error == pytest.approx(12.0 - prediction.predicted_fat_mass)

    def test_small_change_has_no_ratio(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        prediction = predict_body_composition(SCAN, 79.5, factors, EMPTY)
        actual = DEXAScan.create(D0 + timedelta(days=30), 79.5, 15.6, 60.9, "kg", 3.0)
        assert compare_prediction_to_scan(prediction, SCAN, actual).actual_p_ratio is None


class TestPredictionToDict:
    def test_json_ready(self) -> None:
        factors = calculate_p_ratio(INPUTS)
        prediction = predict_body_composition(SCAN, 75.0, factors, EMPTY, D0 + timedelta(days=70), INPUTS)
        data = json.loads(json.dumps(prediction_to_dict(prediction)))
        assert data["target_date"] == "2025-03-17"
        assert data["confidence_level"] == "low"
        assert set(data["fat_mass_range"]) == {"optimistic", "expected", "pessimistic"}
        assert data["assumptions"]["avg_daily_protein"] == 160.0
        assert data["start_scan_id"] == 5


class TestStoredPrediction:
    """The active prediction is reloaded from its payload and back-tested."""

    def stored(self) -> dict:
        factors = calculate_p_ratio(INPUTS)
        prediction = predict_body_composition(SCAN, 75.0, factors, EMPTY, D0 + timedelta(days=70), INPUTS)
        return json.loads(json.dumps(prediction_to_dict(prediction)))

    def test_payload_reloads(self) -> None:
        prediction = prediction_from_dict(self.stored())
        assert prediction.target_date == D0 + timedelta(days=70)
        assert prediction.start_scan_id == 5
        assert prediction.assumptions.avg_daily_protein == 160.0
        assert "Target weight: 75.0 kg" in prediction.summary()

    def test_later_scan_is_checked(self) -> None:
        actual = DEXAScan.create(D0 + timedelta(days=84), 75.0, 12.0, 60.0, "kg", 3.0)
        accuracy = backtest_stored_prediction(self.stored(), [SCAN], actual)
        assert accuracy is not None
        assert accuracy.actual_p_ratio == pytest.approx(0.8)

    def test_nothing_to_check(self) -> None:
        actual = DEXAScan.create(D0 + timedelta(days=84), 75.0, 12.0, 60.0, "kg", 3.0)
        assert backtest_stored_prediction(None, [SCAN], actual) is None
        assert backtest_stored_prediction(self.stored(), [], actual) is None

    def test_earlier_scan_not_checked(self) -> None:
        earlier = DEXAScan.create(D0 - timedelta(days=30), 82.0, 17.0, 62.0, "kg", 3.0)
        assert backtest_stored_prediction(self.stored(), [SCAN], earlier) is None
