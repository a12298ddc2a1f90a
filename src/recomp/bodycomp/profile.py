"""Per-user body composition profile.

Every change to the scan list (insert, delete, correction) recalibrates the
learned P-ratio; callers never trigger calibration themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional

from recomp.bodycomp.calibration import calibrate_p_ratio
from recomp.bodycomp.models import CalibrationTier, DEXAScan, TrainingAge
from recomp.bodycomp.scan_confidence import score_scan
from recomp.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserBodyCompProfile:
    """Learned partitioning state plus the scans it was learned from."""

    user_id: int
    scans: tuple[DEXAScan, ...] = ()
    learned_p_ratio: Optional[float] = None
    p_ratio_confidence: float = 0.0
    p_ratio_tier: CalibrationTier = CalibrationTier.NONE
    p_ratio_data_points: int = 0
    modifiers: dict[str, float] = field(
        default_factory=lambda: {"protein": 1.0, "training": 1.0, "deficit": 1.0}
    )
    training_age: TrainingAge = TrainingAge.INTERMEDIATE
    is_enhanced: bool = False

    @property
    def latest_scan(self) -> Optional[DEXAScan]:
        return self.scans[-1] if self.scans else None

    @property
    def personal_history(self) -> tuple[float, ...]:
        """Observed ratios of valid scan pairs, oldest first."""
        result = calibrate_p_ratio(self.scans)
        return tuple(p.calculated_p_ratio for p in result.scan_pairs if p.is_valid)

    def get_scan(self, scan_id: int) -> Optional[DEXAScan]:
        for scan in self.scans:
            if scan.scan_id == scan_id:
                return scan
        return None


def recalibrate(profile: UserBodyCompProfile, as_of: Optional[date] = None) -> UserBodyCompProfile:
    """Recompute the learned ratio from the profile's scans."""
    result = calibrate_p_ratio(profile.scans, as_of)
    return replace(
        profile,
        learned_p_ratio=result.learned_p_ratio,
        p_ratio_confidence=result.confidence,
        p_ratio_tier=result.tier,
        p_ratio_data_points=result.data_points,
    )


def _rescore(scans: list[DEXAScan]) -> tuple[DEXAScan, ...]:
    """Order scans and score each against its predecessor's provider."""
    scans.sort(key=lambda s: s.scan_date)
    rescored = []
    previous_provider = None
    for i, scan in enumerate(scans):
        confidence = score_scan(scan.conditions, scan.provider, previous_provider)
        rescored.append(replace(scan, confidence=confidence, is_baseline=i == 0))
        previous_provider = scan.provider
    return tuple(rescored)


def add_scan(profile: UserBodyCompProfile, scan: DEXAScan) -> UserBodyCompProfile:
    """Insert a scan (one per date) and recalibrate.

    Raises:
        ValidationError: If a scan already exists for that date
    """
    if any(s.scan_date == scan.scan_date for s in profile.scans):
        raise ValidationError(
            f"a scan already exists for {scan.scan_date.isoformat()}", field="scan_date"
        )
    updated = replace(profile, scans=_rescore([*profile.scans, scan]))
    logger.info("Added scan for %s; recalibrating", scan.scan_date.isoformat())
    return recalibrate(updated)


def remove_scan(profile: UserBodyCompProfile, scan_date: date) -> UserBodyCompProfile:
    """Delete the scan on ``scan_date`` and recalibrate.

    Raises:
        ValidationError: If no scan exists for that date
    """
    remaining = [s for s in profile.scans if s.scan_date != scan_date]
    if len(remaining) == len(profile.scans):
        raise ValidationError(f"no scan on {scan_date.isoformat()}", field="scan_date")
    return recalibrate(replace(profile, scans=_rescore(remaining)))


def correct_scan(profile: UserBodyCompProfile, corrected: DEXAScan) -> UserBodyCompProfile:
    """Replace the scan with the same date by a corrected version and recalibrate."""
    if not any(s.scan_date == corrected.scan_date for s in profile.scans):
        raise ValidationError(
            f"no scan on {corrected.scan_date.isoformat()} to correct", field="scan_date"
        )
    scans = [corrected if s.scan_date == corrected.scan_date else s for s in profile.scans]
    return recalibrate(replace(profile, scans=_rescore(scans)))
