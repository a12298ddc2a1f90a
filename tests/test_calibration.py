"""Tests for personal P-ratio calibration."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from recomp.bodycomp.calibration import (
    analyze_scan_pair,
    calibrate_p_ratio,
    calibration_tier,
    recency_weight,
)
from recomp.bodycomp.models import CalibrationTier, DEXAScan, ScanConfidence

D0 = date(2025, 1, 6)


def scan(
    days: int,
    total: float,
    fat: float,
    lean: float,
    bone: float = 3.0,
    confidence: ScanConfidence = ScanConfidence.MEDIUM,
) -> DEXAScan:
    return DEXAScan.create(
        D0 + timedelta(days=days), total, fat, lean, "kg", bone, confidence=confidence
    )


class TestAnalyzeScanPair:
    """Tests for analyze_scan_pair."""

    def test_valid_loss(self) -> None:
        pair = analyze_scan_pair(scan(0, 80, 16, 61), scan(56, 76, 13, 60))
        assert pair.is_valid
        assert pair.weight_change == pytest.approx(-4.0)
        assert pair.fat_change == pytest.approx(-3.0)
        assert pair.lean_change == pytest.approx(-1.0)
        assert pair.calculated_p_ratio == pytest.approx(0.75)
        assert pair.duration_days == 56

    def test_too_close_together(self) -> None:
        pair = analyze_scan_pair(scan(0, 80, 16, 61), scan(10, 76, 13, 60))
        assert not pair.is_valid
        assert "too close" in pair.invalid_reason

    def test_small_change(self) -> None:
        pair = analyze_scan_pair(scan(0, 80, 16, 61), scan(60, 79.5, 15.7, 60.8))
        assert not pair.is_valid
        assert "too small" in pair.invalid_reason

    def test_ratio_out_of_range(self) -> None:
        # Lost more fat than total mass: lean went up 1 kg on a 2 kg loss
        pair = analyze_scan_pair(scan(0, 80, 16, 61), scan(60, 78, 13, 62))
        assert pair.calculated_p_ratio == pytest.approx(1.5)
        assert not pair.is_valid
        assert "outside" in pair.invalid_reason

    def test_gain(self) -> None:
        pair = analyze_scan_pair(scan(0, 76, 13, 60), scan(90, 80, 15, 62))
        assert pair.is_valid
        assert pair.calculated_p_ratio == pytest.approx(0.5)


class TestCalibrateP:
    """Tests for calibrate_p_ratio."""

    def test_no_scans(self) -> None:
        result = calibrate_p_ratio([])
        assert result.learned_p_ratio is None
        assert result.confidence == 0.0
        assert result.tier is CalibrationTier.NONE

    def test_no_valid_pairs(self) -> None:
        result = calibrate_p_ratio([scan(0, 80, 16, 61), scan(5, 76, 13, 60)])
        assert result.learned_p_ratio is None
        assert result.tier is CalibrationTier.NONE
        assert len(result.scan_pairs) == 1

    def test_single_pair_is_low_confidence(self) -> None:
        result = calibrate_p_ratio([scan(0, 80, 16, 61), scan(56, 76, 13, 60)])
        assert result.learned_p_ratio == pytest.approx(0.75)
        # 1/3 for one observation, 0.6 agreement, 0.7 for medium scans
        assert result.confidence == pytest.approx(1 / 3 * 0.6 * 0.7)
        assert result.tier is CalibrationTier.LOW
        assert result.data_points == 1

    def test_order_independent(self) -> None:
        scans = [scan(56, 76, 13, 60), scan(0, 80, 16, 61)]
        assert calibrate_p_ratio(scans).learned_p_ratio == pytest.approx(0.75)

    def test_agreeing_pairs_raise_confidence(self) -> None:
        high = ScanConfidence.HIGH
        scans = [
            scan(0, 80, 16, 61, confidence=high),
            scan(56, 76, 13, 60, confidence=high),
            scan(112, 72, 10, 59, confidence=high),
        ]
        result = calibrate_p_ratio(scans)
        assert result.data_points == 2
        assert result.learned_p_ratio == pytest.approx(0.75)
        assert result.confidence == pytest.approx(0.5)
        assert result.tier is CalibrationTier.MEDIUM

    def test_disagreeing_pairs_lower_confidence(self) -> None:
        high = ScanConfidence.HIGH
        agreeing = calibrate_p_ratio([
            scan(0, 80, 16, 61, confidence=high),
            scan(56, 76, 13, 60, confidence=high),
            scan(112, 72, 10, 59, confidence=high),
        ])
        disagreeing = calibrate_p_ratio([
            scan(0, 80, 16, 61, confidence=high),
            scan(56, 76, 13, 60, confidence=high),
            scan(112, 72, 11, 58, confidence=high),
        ])
        assert disagreeing.confidence < agreeing.confidence

    def test_recent_pairs_weigh_more(self) -> None:
        scans = [
            scan(0, 80, 16, 61),
            scan(60, 76, 14, 59),  # ratio 0.5
            scan(400, 72, 10.4, 58.6),  # ratio 0.9
        ]
        result = calibrate_p_ratio(scans)
        assert result.learned_p_ratio > 0.7

    def test_low_confidence_scans_weigh_less(self) -> None:
        def learned(last: ScanConfidence) -> float:
            scans = [
                scan(0, 80, 16, 61, confidence=ScanConfidence.HIGH),
                scan(60, 76, 14, 59, confidence=ScanConfidence.HIGH),  # ratio 0.5
                scan(120, 72, 10.4, 58.6, confidence=last),  # ratio 0.9
            ]
            return calibrate_p_ratio(scans).learned_p_ratio

        assert 0.5 < learned(ScanConfidence.LOW) < learned(ScanConfidence.HIGH) < 0.9

    def test_learned_ratio_inside_unit_interval(self) -> None:
        result = calibrate_p_ratio([scan(0, 80, 16, 61), scan(60, 78, 13.9, 61.1)])
        assert 0.0 < result.learned_p_ratio < 1.0


class TestHelpers:
    def test_recency_half_life(self) -> None:
        assert recency_weight(D0, D0) == 1.0
        assert recency_weight(D0, D0 + timedelta(days=180)) == pytest.approx(0.5)

    def test_tiers(self) -> None:
        assert calibration_tier(0.0, 0) is CalibrationTier.NONE
        assert calibration_tier(0.2, 1) is CalibrationTier.LOW
        assert calibration_tier(0.4, 2) is CalibrationTier.MEDIUM
        assert calibration_tier(0.7, 4) is CalibrationTier.HIGH
