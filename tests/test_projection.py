"""Tests for weight trajectory projection."""

from __future__ import annotations

import math

import pytest

from recomp.errors import ValidationError
from recomp.tracking.models import Confidence, EstimateSource, TDEEEstimate
from recomp.tracking.projection import predict_goal_date, predict_weight, predict_weights

ESTIMATE = TDEEEstimate(
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


class TestPredictWeight:
    """Tests for predict_weight."""

    def test_horizon_zero_is_exact(self) -> None:
        prediction = predict_weight(80.0, ESTIMATE, 2000.0, 0)
        assert prediction.predicted_weight == 80.0
        assert prediction.lower_bound == prediction.upper_bound == 80.0

    def test_deficit_drift(self) -> None:
        # 28 days * -770 kcal / 7700 = -2.8 kg
        prediction = predict_weight(80.0, ESTIMATE, 1730.0, 28)
        assert prediction.predicted_weight == pytest.approx(77.2)

    def test_maintenance_is_flat(self) -> None:
        prediction = predict_weight(80.0, ESTIMATE, 2500.0, 14)
        assert prediction.predicted_weight == pytest.approx(80.0)

    def test_band_grows_with_sqrt_horizon(self) -> None:
        short = predict_weight(80.0, ESTIMATE, 2000.0, 4)
        long = predict_weight(80.0, ESTIMATE, 2000.0, 16)
        short_width = short.upper_bound - short.lower_bound
        long_width = long.upper_bound - long.lower_bound
        assert long_width == pytest.approx(2 * short_width)
        assert short_width == pytest.approx(2 * 154.0 * math.sqrt(4) / 7700)

    def test_band_contains_prediction(self) -> None:
        prediction = predict_weight(80.0, ESTIMATE, 2200.0, 30)
        assert prediction.lower_bound < prediction.predicted_weight < prediction.upper_bound

    def test_negative_horizon_rejected(self) -> None:
        with pytest.raises(ValidationError):
            predict_weight(80.0, ESTIMATE, 2000.0, -1)

    def test_multiple_horizons(self) -> None:
        predictions = predict_weights(80.0, ESTIMATE, 2000.0, [7, 14, 28])
        assert [p.horizon_days for p in predictions] == [7, 14, 28]
        weights = [p.predicted_weight for p in predictions]
        assert weights == sorted(weights, reverse=True)


class TestPredictGoalDate:
    def test_days_to_goal(self) -> None:
        # -500 kcal/day loses 1 kg every 15.4 days
        prediction = predict_goal_date(80.0, 78.0, ESTIMATE, 2000.0)
        assert prediction.days_required == math.ceil(2 / (500 / 7700))
        assert prediction.earliest_days < prediction.days_required < prediction.latest_days

    def test_moving_away_from_goal(self) -> None:
        assert predict_goal_date(80.0, 75.0, ESTIMATE, 2800.0) is None

    def test_maintenance_never_reaches(self) -> None:
        assert predict_goal_date(80.0, 75.0, ESTIMATE, 2500.0) is None

    def test_already_there(self) -> None:
        prediction = predict_goal_date(80.0, 80.0, ESTIMATE, 2000.0)
        assert prediction.days_required == 0
