"""Learn a personal P-ratio from consecutive scan pairs.

Every consecutive pair of scans yields an observed ratio Δfat / Δtotal. Valid
observations are averaged with weights combining recency and the confidence
of the two scans. The calibration confidence grows with the number of
observations and with their agreement.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Optional, Sequence

import numpy as np

from recomp.bodycomp.models import (
    SCAN_CONFIDENCE_WEIGHTS,
    CalibrationResult,
    CalibrationTier,
    DEXAScan,
    ScanPairAnalysis,
)

logger = logging.getLogger(__name__)

MIN_WEIGHT_CHANGE_KG = 1.0
MIN_PAIR_DAYS = 14
VALID_RATIO_RANGE = (0.3, 1.1)
# Learned ratios are kept strictly inside (0, 1)
LEARNED_RATIO_BOUNDS = (0.05, 0.98)

RECENCY_HALF_LIFE_DAYS = 180.0
# Count term n / (n + COUNT_PRIOR): one observation gives 1/3, four give 2/3
COUNT_PRIOR = 2.0
SINGLE_OBSERVATION_AGREEMENT = 0.6
# Spread (weighted SD) at which agreement halves
AGREEMENT_SCALE = 0.08


def analyze_scan_pair(start: DEXAScan, end: DEXAScan) -> ScanPairAnalysis:
    """Observed partition between two scans, with validity checks."""
    weight_change = end.total_mass_kg - start.total_mass_kg
    fat_change = end.fat_mass_kg - start.fat_mass_kg
    lean_change = end.lean_mass_kg - start.lean_mass_kg
    duration = (end.scan_date - start.scan_date).days

    reason = None
    ratio = 0.0
    if abs(weight_change) < MIN_WEIGHT_CHANGE_KG:
        reason = "Weight change too small for a reliable ratio"
    else:
        ratio = fat_change / weight_change
        if not VALID_RATIO_RANGE[0] <= ratio <= VALID_RATIO_RANGE[1]:
            reason = f"Observed ratio {ratio:.2f} outside the expected range"
    if duration < MIN_PAIR_DAYS:
        reason = "Scans too close together for a reliable measurement"

    return ScanPairAnalysis(
        start_scan=start,
        end_scan=end,
        weight_change=weight_change,
        fat_change=fat_change,
        lean_change=lean_change,
        calculated_p_ratio=ratio,
        duration_days=duration,
        is_valid=reason is None,
        invalid_reason=reason,
    )


def recency_weight(pair_end: date, as_of: date) -> float:
    age = max((as_of - pair_end).days, 0)
    return 0.5 ** (age / RECENCY_HALF_LIFE_DAYS)


def pair_confidence_weight(pair: ScanPairAnalysis) -> float:
    return min(
        SCAN_CONFIDENCE_WEIGHTS[pair.start_scan.confidence],
        SCAN_CONFIDENCE_WEIGHTS[pair.end_scan.confidence],
    )


def calibration_tier(confidence: float, data_points: int) -> CalibrationTier:
    if data_points == 0:
        return CalibrationTier.NONE
    if confidence >= 0.6:
        return CalibrationTier.HIGH
    if confidence >= 0.35:
        return CalibrationTier.MEDIUM
    return CalibrationTier.LOW


def calibrate_p_ratio(
    scans: Sequence[DEXAScan],
    as_of: Optional[date] = None,
) -> CalibrationResult:
    """Fold all valid consecutive scan pairs into a learned P-ratio.

    Args:
        scans: Scans in any order
        as_of: Reference date for recency weighting (defaults to the last scan)

    Returns:
        CalibrationResult; ``learned_p_ratio`` is None and confidence 0 when
        there is no valid pair
    """
    ordered = sorted(scans, key=lambda s: s.scan_date)
    pairs = tuple(analyze_scan_pair(a, b) for a, b in zip(ordered, ordered[1:]))
    valid = [p for p in pairs if p.is_valid]
    if not valid:
        return CalibrationResult(None, 0.0, CalibrationTier.NONE, 0, pairs)

    as_of = as_of or ordered[-1].scan_date
    ratios = np.array([p.calculated_p_ratio for p in valid])
    conf_weights = np.array([pair_confidence_weight(p) for p in valid])
    weights = np.array([recency_weight(p.end_scan.scan_date, as_of) for p in valid]) * conf_weights

    mean = float(np.average(ratios, weights=weights))
    learned = min(LEARNED_RATIO_BOUNDS[1], max(LEARNED_RATIO_BOUNDS[0], mean))

    n = len(valid)
    if n == 1:
        agreement = SINGLE_OBSERVATION_AGREEMENT
    else:
        spread = math.sqrt(float(np.average((ratios - mean) ** 2, weights=weights)))
        agreement = 1.0 / (1.0 + (spread / AGREEMENT_SCALE) ** 2)
    confidence = n / (n + COUNT_PRIOR) * agreement * float(conf_weights.mean())

    logger.debug(
        "Calibrated P-ratio %.3f from %d pair(s), confidence %.2f", learned, n, confidence
    )
    return CalibrationResult(
        learned_p_ratio=learned,
        confidence=confidence,
        tier=calibration_tier(confidence, n),
        data_points=n,
        scan_pairs=pairs,
    )
