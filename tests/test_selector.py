"""Tests for estimate selection, history and target sync."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

import pytest
from conftest import START, energy_balance_series

from recomp.tracking.conditioning import condition_series
from recomp.tracking.context import EstimationContext
from recomp.tracking.models import (
    Confidence,
    DailyDataPoint,
    EstimateSource,
    HistoryPoint,
    TDEEEstimate,
)
from recomp.tracking.quality import DataQualityCheck, check_data_quality
from recomp.tracking.selector import (
    SyncReason,
    append_history,
    compare_with_formula,
    decide_target_sync,
    select_estimate,
)


def make_estimate(
    tdee: float,
    confidence: Confidence = Confidence.STABLE,
    source: EstimateSource = EstimateSource.REGRESSION,
    r_squared: Optional[float] = 0.6,
) -> TDEEEstimate:
    return TDEEEstimate(
        burn_rate_per_kg=tdee / 80.0,
        estimated_tdee=tdee,
        current_weight=80.0,
        confidence=confidence,
        confidence_score=0.7,
        standard_error=120.0,
        data_points_used=20,
        window_days=28,
        source=source,
        r_squared=r_squared if source is EstimateSource.REGRESSION else None,
    )


class FixedStrategy:
    def __init__(self, name: str, estimate: Optional[TDEEEstimate]):
        self.name = name
        self.estimate = estimate
        self.calls = 0

    def attempt(self, ctx: EstimationContext) -> Optional[TDEEEstimate]:
        self.calls += 1
        return self.estimate


SUFFICIENT = check_data_quality(energy_balance_series())
NO_DATA = check_data_quality([])


def context(
    formula: Optional[TDEEEstimate] = None,
    quality: DataQualityCheck = SUFFICIENT,
) -> EstimationContext:
    return EstimationContext(
        series=condition_series([], 35),
        quality=quality,
        formula=formula,
    )


FORMULA = make_estimate(2500.0, Confidence.UNSTABLE, EstimateSource.FORMULA)


class TestSelectEstimate:
    """Tests for the strategy chain."""

    def test_first_confident_adaptive_wins(self) -> None:
        strategies = [
            FixedStrategy("enhanced", make_estimate(2600.0, Confidence.STABILIZING)),
            FixedStrategy("baseline", make_estimate(2550.0, Confidence.STABLE)),
            FixedStrategy("formula", FORMULA),
        ]
        selection = select_estimate(context(FORMULA), strategies)
        assert selection.strategy == "enhanced"
        assert selection.authoritative
        assert selection.estimate.estimated_tdee == 2600.0

    def test_unstable_adaptive_is_skipped(self) -> None:
        strategies = [
            FixedStrategy("enhanced", None),
            FixedStrategy("baseline", make_estimate(2550.0, Confidence.UNSTABLE)),
            FixedStrategy("formula", FORMULA),
        ]
        selection = select_estimate(context(FORMULA), strategies)
        assert selection.strategy == "formula"
        assert not selection.authoritative
        assert selection.best_adaptive.estimated_tdee == 2550.0

    def test_all_strategies_attempted(self) -> None:
        strategies = [
            FixedStrategy("enhanced", make_estimate(2600.0)),
            FixedStrategy("formula", FORMULA),
        ]
        select_estimate(context(FORMULA), strategies)
        assert all(s.calls == 1 for s in strategies)

    def test_unstable_adaptive_without_formula(self) -> None:
        strategies = [FixedStrategy("baseline", make_estimate(2550.0, Confidence.UNSTABLE))]
        selection = select_estimate(context(None), strategies)
        assert selection.strategy == "baseline"
        assert not selection.authoritative

    def test_nothing_available(self) -> None:
        selection = select_estimate(context(None), [FixedStrategy("baseline", None)])
        assert selection.estimate is None
        assert selection.strategy is None

    def test_divergence_note(self) -> None:
        strategies = [
            FixedStrategy("baseline", make_estimate(3100.0)),
            FixedStrategy("formula", FORMULA),
        ]
        selection = select_estimate(context(FORMULA), strategies)
        assert selection.divergence_percent == pytest.approx(24.0)
        assert selection.notes == ("Measured expenditure is 24% above the formula estimate",)

    def test_small_divergence_has_no_note(self) -> None:
        strategies = [
            FixedStrategy("baseline", make_estimate(2700.0)),
            FixedStrategy("formula", FORMULA),
        ]
        selection = select_estimate(context(FORMULA), strategies)
        assert selection.divergence_percent == pytest.approx(8.0)
        assert selection.notes == ()

    def test_default_chain(self) -> None:
        ctx = context(FORMULA)
        selection = select_estimate(ctx)
        assert [c.strategy for c in selection.candidates] == [
            "activity_augmented",
            "baseline_regression",
            "formula",
        ]
        assert selection.strategy == "formula"


class TestQualityGate:
    """A failed gate blocks promotion of any adaptive estimate."""

    def test_stable_adaptive_not_promoted(self) -> None:
        strategies = [
            FixedStrategy("baseline", make_estimate(2550.0, Confidence.STABLE)),
            FixedStrategy("formula", FORMULA),
        ]
        selection = select_estimate(context(FORMULA, NO_DATA), strategies)
        assert selection.strategy == "formula"
        assert not selection.authoritative
        assert selection.best_adaptive.estimated_tdee == 2550.0

    def test_reason_codes_attached(self) -> None:
        strategies = [FixedStrategy("formula", FORMULA)]
        selection = select_estimate(context(FORMULA, NO_DATA), strategies)
        assert "too_few_points" in selection.quality_issues
        assert selection.quality_issues == tuple(sorted(selection.quality_issues))

    def test_no_calorie_signal_blocks_target_sync(self) -> None:
        days = [
            DailyDataPoint(START + timedelta(days=i), 80.0 - 0.04 * i, 2200.0 + (i % 3) * 10)
            for i in range(30)
        ]
        quality = check_data_quality(days)
        strategies = [
            FixedStrategy("baseline", make_estimate(2500.0, Confidence.STABLE)),
            FixedStrategy("formula", FORMULA),
        ]
        selection = select_estimate(context(FORMULA, quality), strategies)
        decision = decide_target_sync(selection.estimate, selection.authoritative, 2600.0)
        assert selection.quality_issues == ("no_calorie_signal",)
        assert not decision.should_update
        assert decision.reason is SyncReason.NOT_AUTHORITATIVE

    def test_gate_without_formula_keeps_adaptive(self) -> None:
        strategies = [FixedStrategy("baseline", make_estimate(2550.0, Confidence.STABLE))]
        selection = select_estimate(context(None, NO_DATA), strategies)
        assert selection.strategy == "baseline"
        assert not selection.authoritative

    def test_sufficient_gate_has_no_issues(self) -> None:
        strategies = [FixedStrategy("baseline", make_estimate(2550.0))]
        selection = select_estimate(context(), strategies)
        assert selection.authoritative
        assert selection.quality_issues == ()


class TestAppendHistory:
    def test_replaces_same_date(self) -> None:
        d = date(2025, 6, 1)
        history = append_history((), d, 2500.0, 0.5)
        history = append_history(history, d, 2550.0, 0.6)
        assert history == (HistoryPoint(d, 2550.0, 0.6),)

    def test_sorted_and_bounded(self) -> None:
        start = date(2025, 1, 1)
        history: tuple[HistoryPoint, ...] = ()
        for i in range(100):
            history = append_history(history, start + timedelta(days=99 - i), 2500.0 + i, 0.5)
        assert len(history) == 90
        assert history[0].date == start + timedelta(days=10)
        assert [h.date for h in history] == sorted(h.date for h in history)

    def test_custom_bound(self) -> None:
        start = date(2025, 1, 1)
        history: tuple[HistoryPoint, ...] = ()
        for i in range(5):
            history = append_history(history, start + timedelta(days=i), 2500.0, 0.5, max_entries=3)
        assert [h.date.day for h in history] == [3, 4, 5]


class TestDecideTargetSync:
    """Only stable, authoritative estimates change targets."""

    def test_updates_large_change(self) -> None:
        decision = decide_target_sync(make_estimate(2600.0), True, 2400.0, goal_offset=-500)
        assert decision.should_update
        assert decision.reason is SyncReason.UPDATED
        assert decision.proposed_target == 2100.0
        assert decision.change == pytest.approx(-300.0)

    def test_below_threshold(self) -> None:
        decision = decide_target_sync(make_estimate(2520.0), True, 2500.0)
        assert not decision.should_update
        assert decision.reason is SyncReason.BELOW_THRESHOLD

    def test_no_current_target(self) -> None:
        decision = decide_target_sync(make_estimate(2600.0), True, None)
        assert decision.should_update
        assert decision.reason is SyncReason.NO_CURRENT_TARGET
        assert decision.change is None

    def test_not_authoritative(self) -> None:
        decision = decide_target_sync(FORMULA, False, 2000.0)
        assert not decision.should_update
        assert decision.reason is SyncReason.NOT_AUTHORITATIVE

    def test_stabilizing_is_informational(self) -> None:
        decision = decide_target_sync(make_estimate(2600.0, Confidence.STABILIZING), True, 2000.0)
        assert not decision.should_update
        assert decision.reason is SyncReason.NOT_STABLE
        assert decision.informational
        assert decision.proposed_target == 2600.0

    def test_proposed_is_rounded(self) -> None:
        decision = decide_target_sync(make_estimate(2587.6), True, None)
        assert decision.proposed_target == 2588.0


class TestCompareWithFormula:
    def test_without_adaptive(self) -> None:
        comparison = compare_with_formula(None, FORMULA)
        assert comparison.adaptive is None
        assert "Keep logging" in comparison.recommendation

    def test_close_match(self) -> None:
        comparison = compare_with_formula(make_estimate(2550.0), FORMULA)
        assert "closely matches" in comparison.recommendation

    def test_lower_than_formula(self) -> None:
        comparison = compare_with_formula(make_estimate(2000.0), FORMULA)
        assert comparison.difference == pytest.approx(-500.0)
        assert "20% lower" in comparison.recommendation
