"""Tests for scan confidence scoring."""

from __future__ import annotations

from recomp.bodycomp.models import Hydration, ScanConditions, ScanConfidence, TimeOfDay
from recomp.bodycomp.scan_confidence import same_provider, scan_points, score_scan


class TestScoreScan:
    """Tests for score_scan."""

    def test_ideal_conditions_are_high(self) -> None:
        conditions = ScanConditions(TimeOfDay.MORNING_FASTED, Hydration.NORMAL, False)
        assert scan_points(conditions, "Clinic", "clinic") == 8
        assert score_scan(conditions, "Clinic", "clinic") is ScanConfidence.HIGH

    def test_default_conditions_are_medium(self) -> None:
        assert scan_points(ScanConditions()) == 5
        assert score_scan(ScanConditions()) is ScanConfidence.MEDIUM

    def test_poor_conditions_are_low(self) -> None:
        conditions = ScanConditions(TimeOfDay.EVENING, Hydration.DEHYDRATED, True)
        assert scan_points(conditions) == 1
        assert score_scan(conditions) is ScanConfidence.LOW

    def test_thresholds(self) -> None:
        # fed 2 + normal 2 + no workout 1 + same provider 2 = 7
        conditions = ScanConditions(TimeOfDay.MORNING_FED, Hydration.NORMAL, False, True)
        assert score_scan(conditions) is ScanConfidence.HIGH
        # afternoon 1 + unknown 1 + same provider 2 = 4
        conditions = ScanConditions(TimeOfDay.AFTERNOON, Hydration.UNKNOWN, True, True)
        assert score_scan(conditions) is ScanConfidence.MEDIUM

    def test_string_values_accepted(self) -> None:
        conditions = ScanConditions("afternoon", "overhydrated")
        assert conditions.time_of_day is TimeOfDay.AFTERNOON
        assert conditions.hydration is Hydration.OVERHYDRATED


class TestSameProvider:
    def test_explicit_flag_wins(self) -> None:
        conditions = ScanConditions(same_provider_as_previous=False)
        assert not same_provider(conditions, "A", "A")

    def test_case_insensitive_match(self) -> None:
        assert same_provider(ScanConditions(), " DexaFit ", "dexafit")

    def test_no_previous_scan(self) -> None:
        assert not same_provider(ScanConditions(), "A", None)
