"""Tests for the activity-augmented estimator."""

from __future__ import annotations

import numpy as np
import pytest
from conftest import activity_series, energy_balance_series

from recomp.config.settings import EnhancedConfig
from recomp.tracking.conditioning import condition_series
from recomp.tracking.enhanced import (
    daily_tdee,
    estimate_enhanced,
    has_activity_signal,
    projected_gradient_descent,
)
from recomp.tracking.models import Confidence, EnhancedTDEEEstimate, EstimateSource


class TestProjectedGradientDescent:
    """Tests for the bounded descent itself."""

    def test_recovers_interior_parameters(self) -> None:
        rng = np.random.default_rng(1)
        features = np.column_stack([
            rng.uniform(70, 90, 40),
            rng.uniform(2000, 15000, 40),
            rng.uniform(0, 600, 40),
        ])
        true = np.array([28.0, 0.06, 1.2])
        result = projected_gradient_descent(features, features @ true)
        assert result.converged
        assert result.params == pytest.approx(true, rel=1e-3)

    def test_respects_bounds(self) -> None:
        """A target needing alpha far above the bound stops at the bound."""
        rng = np.random.default_rng(2)
        features = np.column_stack([
            rng.uniform(70, 90, 30),
            rng.uniform(2000, 15000, 30),
            rng.uniform(0, 600, 30),
        ])
        target = features @ np.array([60.0, 0.04, 1.0])
        config = EnhancedConfig()
        result = projected_gradient_descent(features, target, config)
        alpha, beta, gamma = result.params
        assert alpha == pytest.approx(config.base_burn_bounds[1])
        assert config.step_burn_bounds[0] <= beta <= config.step_burn_bounds[1]
        assert config.workout_multiplier_bounds[0] <= gamma <= config.workout_multiplier_bounds[1]

    def test_iteration_cap(self) -> None:
        rng = np.random.default_rng(3)
        features = np.column_stack([
            rng.uniform(70, 90, 30),
            rng.uniform(2000, 15000, 30),
            rng.uniform(0, 600, 30),
        ])
        target = features @ np.array([25.0, 0.07, 0.6])
        result = projected_gradient_descent(features, target, EnhancedConfig(max_iterations=2))
        assert not result.converged
        assert result.iterations == 2


class TestEstimateEnhanced:
    """Tests for estimate_enhanced."""

    def test_recovers_activity_model(self) -> None:
        series = condition_series(activity_series(), 35)
        estimate = estimate_enhanced(series)
        assert isinstance(estimate, EnhancedTDEEEstimate)
        assert estimate.source is EstimateSource.REGRESSION
        assert estimate.base_burn_rate == pytest.approx(32.0, abs=0.5)
        assert estimate.step_burn_rate == pytest.approx(0.05, abs=0.005)
        assert estimate.workout_calorie_multiplier == pytest.approx(0.8, abs=0.05)
        assert estimate.confidence >= Confidence.STABILIZING

    def test_tdee_uses_average_activity(self) -> None:
        series = condition_series(activity_series(), 35)
        estimate = estimate_enhanced(series)
        expected = (
            estimate.base_burn_rate * estimate.current_weight
            + estimate.step_burn_rate * estimate.average_steps
            + estimate.workout_calorie_multiplier * estimate.average_workout_calories
        )
        assert estimate.estimated_tdee == pytest.approx(expected)

    def test_no_activity_signal(self) -> None:
        series = condition_series(energy_balance_series(), 35)
        assert not has_activity_signal(series)
        assert estimate_enhanced(series) is None

    def test_too_few_points(self) -> None:
        series = condition_series(activity_series(days=9), 35)
        assert estimate_enhanced(series) is None

    def test_non_convergence_falls_back(self) -> None:
        series = condition_series(activity_series(), 35)
        assert estimate_enhanced(series, EnhancedConfig(max_iterations=1)) is None


class TestDailyTdee:
    def test_breakdown(self) -> None:
        series = condition_series(activity_series(), 35)
        estimate = estimate_enhanced(series)
        rest = daily_tdee(estimate, 80.0, steps=3000)
        active = daily_tdee(estimate, 80.0, steps=15000, workout_calories=500)
        assert active.total > rest.total
        assert rest.workout == 0
        assert rest.total == pytest.approx(rest.base + rest.steps, abs=1)
