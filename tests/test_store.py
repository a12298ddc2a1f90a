"""Tests for the estimate store and its change notifications."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from recomp.tracking.models import Confidence, EstimateSource, TDEEEstimate
from recomp.tracking.store import EstimateChanged, EstimateStore

ESTIMATE = TDEEEstimate(
    burn_rate_per_kg=31.25,
    estimated_tdee=2500.0,
    current_weight=80.0,
    confidence=Confidence.STABLE,
    confidence_score=0.8,
    standard_error=150.0,
    data_points_used=25,
    window_days=30,
    source=EstimateSource.REGRESSION,
    r_squared=0.5,
)


class Recorder:
    def __init__(self):
        self.events: list[EstimateChanged] = []

    def on_estimate_changed(self, event: EstimateChanged) -> None:
        self.events.append(event)


class MemoryRepository:
    def __init__(self, stored: Optional[TDEEEstimate] = None):
        self.stored = {1: stored} if stored else {}
        self.saves = 0

    def load_estimate(self, user_id: int) -> Optional[TDEEEstimate]:
        return self.stored.get(user_id)

    def save_estimate(self, user_id: int, estimate: TDEEEstimate) -> None:
        self.saves += 1
        self.stored[user_id] = estimate


class TestEstimateStore:
    """Tests for EstimateStore."""

    def test_empty(self) -> None:
        assert EstimateStore().get(1) is None

    def test_upsert_notifies(self) -> None:
        store = EstimateStore()
        recorder = Recorder()
        store.subscribe(recorder)
        event = store.upsert(1, ESTIMATE)
        assert store.get(1) == ESTIMATE
        assert recorder.events == [event]
        assert event.previous is None
        assert event.tdee_delta is None

    def test_last_writer_wins(self) -> None:
        store = EstimateStore()
        store.upsert(1, ESTIMATE)
        newer = replace(ESTIMATE, estimated_tdee=2600.0)
        event = store.upsert(1, newer)
        assert store.get(1).estimated_tdee == 2600.0
        assert event.tdee_delta == 100.0

    def test_unchanged_estimate_is_silent(self) -> None:
        store = EstimateStore()
        recorder = Recorder()
        store.subscribe(recorder)
        store.upsert(1, ESTIMATE)
        assert store.upsert(1, ESTIMATE) is None
        assert len(recorder.events) == 1

    def test_unsubscribe(self) -> None:
        store = EstimateStore()
        recorder = Recorder()
        unsubscribe = store.subscribe(recorder)
        unsubscribe()
        store.upsert(1, ESTIMATE)
        assert recorder.events == []

    def test_users_are_independent(self) -> None:
        store = EstimateStore()
        store.upsert(1, ESTIMATE)
        assert store.get(2) is None

    def test_repository_read_through(self) -> None:
        store = EstimateStore(MemoryRepository(ESTIMATE))
        assert store.get(1) == ESTIMATE

    def test_repository_write_through(self) -> None:
        repository = MemoryRepository()
        store = EstimateStore(repository)
        store.upsert(1, ESTIMATE)
        assert repository.stored[1] == ESTIMATE
        assert repository.saves == 1
