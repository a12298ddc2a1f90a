"""Scan confidence from measurement conditions.

Purely declarative: a low score down-weights a scan during calibration but
never corrects or discards its masses.
"""

from __future__ import annotations

from typing import Optional

from recomp.bodycomp.models import Hydration, ScanConditions, ScanConfidence, TimeOfDay

TIME_OF_DAY_POINTS = {
    TimeOfDay.MORNING_FASTED: 3,
    TimeOfDay.MORNING_FED: 2,
    TimeOfDay.AFTERNOON: 1,
    TimeOfDay.EVENING: 1,
}

HYDRATION_POINTS = {
    Hydration.NORMAL: 2,
    Hydration.UNKNOWN: 1,
    Hydration.DEHYDRATED: 0,
    Hydration.OVERHYDRATED: 0,
}

NO_RECENT_WORKOUT_POINTS = 1
SAME_PROVIDER_POINTS = 2

HIGH_THRESHOLD = 7
MEDIUM_THRESHOLD = 4


def same_provider(
    conditions: ScanConditions,
    provider: Optional[str],
    previous_provider: Optional[str],
) -> bool:
    """Whether the scan used the same provider as the prior scan.

    An explicit flag on the conditions wins; otherwise provider names are
    compared case-insensitively.
    """
    if conditions.same_provider_as_previous is not None:
        return conditions.same_provider_as_previous
    if not provider or not previous_provider:
        return False
    return provider.strip().lower() == previous_provider.strip().lower()


def scan_points(
    conditions: ScanConditions,
    provider: Optional[str] = None,
    previous_provider: Optional[str] = None,
) -> int:
    points = TIME_OF_DAY_POINTS[conditions.time_of_day]
    points += HYDRATION_POINTS[conditions.hydration]
    if not conditions.recent_workout:
        points += NO_RECENT_WORKOUT_POINTS
    if same_provider(conditions, provider, previous_provider):
        points += SAME_PROVIDER_POINTS
    return points


def score_scan(
    conditions: ScanConditions,
    provider: Optional[str] = None,
    previous_provider: Optional[str] = None,
) -> ScanConfidence:
    """Categorical confidence for a scan.

    Args:
        conditions: How the scan was taken
        provider: This scan's provider
        previous_provider: Provider of the previous scan, if any

    Returns:
        ScanConfidence (high at 7+ points, medium at 4+, otherwise low)
    """
    points = scan_points(conditions, provider, previous_provider)
    if points >= HIGH_THRESHOLD:
        return ScanConfidence.HIGH
    if points >= MEDIUM_THRESHOLD:
        return ScanConfidence.MEDIUM
    return ScanConfidence.LOW
