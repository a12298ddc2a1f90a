"""Estimate selection, history tracking and nutrition target sync.

Estimators form a priority-ordered fallback chain. Each strategy exposes
``attempt(ctx)`` returning an estimate or None; adding a new estimator means
adding a strategy to the list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Protocol, Sequence

from recomp.config.settings import SelectorConfig
from recomp.tracking.context import EstimationContext
from recomp.tracking.enhanced import ActivityAugmentedEstimator
from recomp.tracking.formula import FormulaEstimator
from recomp.tracking.models import Confidence, HistoryPoint, TDEEEstimate
from recomp.tracking.regression import BaselineRegressionEstimator

logger = logging.getLogger(__name__)


class EstimatorStrategy(Protocol):
    """Uniform contract of every estimator in the chain."""

    name: str

    def attempt(self, ctx: EstimationContext) -> Optional[TDEEEstimate]:
        ...


def default_strategies() -> list[EstimatorStrategy]:
    """Activity-augmented, then baseline regression, then formula."""
    return [ActivityAugmentedEstimator(), BaselineRegressionEstimator(), FormulaEstimator()]


@dataclass(frozen=True)
class Candidate:
    strategy: str
    estimate: Optional[TDEEEstimate]


@dataclass(frozen=True)
class Selection:
    """Chosen estimate plus everything that was considered."""

    estimate: Optional[TDEEEstimate]
    strategy: Optional[str]
    authoritative: bool
    candidates: tuple[Candidate, ...] = ()
    divergence_percent: Optional[float] = None
    notes: tuple[str, ...] = ()
    quality_issues: tuple[str, ...] = ()

    @property
    def best_adaptive(self) -> Optional[TDEEEstimate]:
        for candidate in self.candidates:
            if candidate.estimate is not None and candidate.estimate.is_adaptive:
                return candidate.estimate
        return None


def divergence_percent(adaptive: TDEEEstimate, formula: TDEEEstimate) -> float:
    """Signed difference of adaptive vs formula TDEE, in percent of formula."""
    return (adaptive.estimated_tdee - formula.estimated_tdee) / formula.estimated_tdee * 100


def select_estimate(
    ctx: EstimationContext,
    strategies: Optional[Sequence[EstimatorStrategy]] = None,
    config: Optional[SelectorConfig] = None,
) -> Selection:
    """Run the strategy chain and pick the estimate to present.

    When the quality gate passes, the first adaptive estimate at
    ``stabilizing`` or better is promoted to authoritative. When the gate
    fails no adaptive estimate is promoted, whatever its fit statistics, and
    the gate's reason codes are attached to the selection. Without a
    promoted estimate the formula estimate is presented (or, without
    anthropometrics, the best adaptive one) and marked as not authoritative.

    Args:
        ctx: Shared estimation inputs
        strategies: Priority-ordered strategies (defaults to the standard chain)
        config: Divergence threshold

    Returns:
        Selection
    """
    strategies = default_strategies() if strategies is None else strategies
    config = config or ctx.config.selector

    candidates = tuple(Candidate(s.name, s.attempt(ctx)) for s in strategies)
    chosen: Optional[Candidate] = None
    authoritative = False
    gated = not ctx.quality.sufficient
    issues: tuple[str, ...] = ()
    if gated:
        issues = tuple(sorted(code.value for code in ctx.quality.reason_codes))
        logger.info("Quality gate failed (%s); adaptive estimates not promoted", ", ".join(issues))
    for candidate in candidates:
        est = candidate.estimate
        if gated or est is None or not est.is_adaptive:
            continue
        if est.confidence >= Confidence.STABILIZING:
            chosen = candidate
            authoritative = True
            break

    if chosen is None:
        fallbacks = [c for c in candidates if c.estimate is not None and not c.estimate.is_adaptive]
        fallbacks = fallbacks or [c for c in candidates if c.estimate is not None]
        chosen = fallbacks[0] if fallbacks else None

    notes = []
    divergence = None
    adaptive = chosen.estimate if authoritative else None
    if adaptive is None:
        adaptive = next(
            (c.estimate for c in candidates if c.estimate is not None and c.estimate.is_adaptive
             and c.estimate.r_squared is not None),
            None,
        )
    if adaptive is not None and ctx.formula is not None:
        divergence = divergence_percent(adaptive, ctx.formula)
        if abs(divergence) >= config.divergence_threshold * 100:
            direction = "above" if divergence > 0 else "below"
            notes.append(
                f"Measured expenditure is {abs(divergence):.0f}% {direction} the formula estimate"
            )

    if chosen is None:
        logger.info("No estimate available: no usable data and no profile")
        return Selection(None, None, False, candidates, divergence, tuple(notes), issues)

    logger.debug(
        "Selected %s (%s, authoritative=%s)",
        chosen.strategy,
        chosen.estimate.confidence.value,
        authoritative,
    )
    return Selection(
        estimate=chosen.estimate,
        strategy=chosen.strategy,
        authoritative=authoritative,
        candidates=candidates,
        divergence_percent=divergence,
        notes=tuple(notes),
        quality_issues=issues,
    )


def append_history(
    history: Sequence[HistoryPoint],
    as_of: date,
    tdee: float,
    score: float,
    max_entries: int = 90,
) -> tuple[HistoryPoint, ...]:
    """Add a snapshot, replacing any entry for the same date.

    Args:
        history: Existing snapshots
        as_of: Date of the recompute
        tdee: Estimated TDEE
        score: Confidence score
        max_entries: Oldest snapshots are dropped beyond this bound

    Returns:
        Date-ordered snapshots
    """
    kept = [h for h in history if h.date != as_of]
    kept.append(HistoryPoint(as_of, tdee, score))
    kept.sort(key=lambda h: h.date)
    return tuple(kept[-max_entries:])


class SyncReason(Enum):
    """Why a nutrition target was or was not updated."""

    UPDATED = "updated"
    NO_CURRENT_TARGET = "no_current_target"
    NOT_AUTHORITATIVE = "not_authoritative"
    NOT_STABLE = "not_stable"
    BELOW_THRESHOLD = "below_threshold"


@dataclass(frozen=True)
class SyncDecision:
    """Record describing whether the calorie target changes."""

    should_update: bool
    reason: SyncReason
    proposed_target: float
    current_target: Optional[float]
    change: Optional[float]
    message: str = ""
    informational: bool = field(default=False)


def decide_target_sync(
    estimate: TDEEEstimate,
    authoritative: bool,
    current_target: Optional[float],
    goal_offset: float = 0.0,
    min_change: float = 50.0,
) -> SyncDecision:
    """Decide whether to overwrite the user's calorie target.

    Only stable, authoritative estimates change targets. A stabilizing
    estimate yields an informational decision without an update.

    Args:
        estimate: Selected TDEE estimate
        authoritative: Whether the selector promoted the estimate
        current_target: Active daily calorie target, if any
        goal_offset: Daily deficit (negative) or surplus applied to TDEE
        min_change: Smallest change worth applying (kcal)

    Returns:
        SyncDecision
    """
    proposed = float(round(estimate.estimated_tdee + goal_offset))
    change = proposed - current_target if current_target is not None else None

    if not authoritative:
        return SyncDecision(
            False, SyncReason.NOT_AUTHORITATIVE, proposed, current_target, change,
            "Estimate is not reliable enough to change targets",
        )
    if estimate.confidence is not Confidence.STABLE:
        return SyncDecision(
            False, SyncReason.NOT_STABLE, proposed, current_target, change,
            f"Estimate is {estimate.confidence.value}; suggested target {proposed:.0f} kcal",
            informational=True,
        )
    if current_target is None:
        return SyncDecision(
            True, SyncReason.NO_CURRENT_TARGET, proposed, None, None,
            f"Target set to {proposed:.0f} kcal",
        )
    if abs(change) < min_change:
        return SyncDecision(
            False, SyncReason.BELOW_THRESHOLD, proposed, current_target, change,
            f"Change of {change:+.0f} kcal is below the {min_change:.0f} kcal threshold",
        )
    return SyncDecision(
        True, SyncReason.UPDATED, proposed, current_target, change,
        f"Target updated from {current_target:.0f} to {proposed:.0f} kcal",
    )


@dataclass(frozen=True)
class FormulaComparison:
    difference: float
    percent_difference: float
    adaptive: Optional[float]
    formula: float
    recommendation: str


def compare_with_formula(
    adaptive: Optional[TDEEEstimate],
    formula: TDEEEstimate,
) -> FormulaComparison:
    """Explain how the measured expenditure relates to the formula."""
    if adaptive is None:
        return FormulaComparison(
            0.0, 0.0, None, formula.estimated_tdee,
            "Keep logging weight and intake to unlock a personal estimate.",
        )
    difference = adaptive.estimated_tdee - formula.estimated_tdee
    percent = round(divergence_percent(adaptive, formula))
    if abs(percent) < 5:
        text = "Your measured expenditure closely matches the formula estimate."
    elif difference > 0:
        text = f"Your measured expenditure is {percent}% higher than the formula predicts."
    else:
        text = f"Your measured expenditure is {abs(percent)}% lower than the formula predicts."
    return FormulaComparison(difference, percent, adaptive.estimated_tdee, formula.estimated_tdee, text)
