"""Holder of the current estimate per user, with change notifications.

Consumers (display, target sync) subscribe to :class:`EstimateChanged`
events on an explicit :class:`EstimateStore` instance instead of polling
shared module state.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from recomp.tracking.models import TDEEEstimate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EstimateChanged:
    """Emitted after a stored estimate is replaced."""

    user_id: int
    previous: Optional[TDEEEstimate]
    current: TDEEEstimate

    @property
    def tdee_delta(self) -> Optional[float]:
        if self.previous is None:
            return None
        return self.current.estimated_tdee - self.previous.estimated_tdee


class EstimateObserver(Protocol):
    def on_estimate_changed(self, event: EstimateChanged) -> None:
        ...


class EstimateRepository(Protocol):
    """Durable backing for the store (see ``recomp.db.queries``)."""

    def load_estimate(self, user_id: int) -> Optional[TDEEEstimate]:
        ...

    def save_estimate(self, user_id: int, estimate: TDEEEstimate) -> None:
        ...


class EstimateStore:
    """Current estimate per user; upserts are last-writer-wins."""

    def __init__(self, repository: Optional[EstimateRepository] = None):
        """Initialize the store.

        Args:
            repository: Optional persistence backend. Reads fall through to
                it on a cache miss and every upsert is written to it.
        """
        self._repository = repository
        self._estimates: dict[int, TDEEEstimate] = {}
        self._observers: list[EstimateObserver] = []
        self._lock = threading.Lock()

    def get(self, user_id: int) -> Optional[TDEEEstimate]:
        with self._lock:
            estimate = self._estimates.get(user_id)
        if estimate is None and self._repository is not None:
            estimate = self._repository.load_estimate(user_id)
            if estimate is not None:
                with self._lock:
                    estimate = self._estimates.setdefault(user_id, estimate)
        return estimate

    def upsert(self, user_id: int, estimate: TDEEEstimate) -> Optional[EstimateChanged]:
        """Replace the user's estimate and notify observers.

        Returns:
            The emitted event, or None when the estimate is unchanged
        """
        previous = self.get(user_id)
        with self._lock:
            self._estimates[user_id] = estimate
            observers = list(self._observers)
        if self._repository is not None:
            self._repository.save_estimate(user_id, estimate)
        if previous == estimate:
            return None

        event = EstimateChanged(user_id, previous, estimate)
        logger.debug("Estimate for user %d now %.0f kcal", user_id, estimate.estimated_tdee)
        for observer in observers:
            observer.on_estimate_changed(event)
        return event

    def subscribe(self, observer: EstimateObserver) -> Callable[[], None]:
        """Register an observer; returns a function that unsubscribes it."""
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            self.unsubscribe(observer)

        return unsubscribe

    def unsubscribe(self, observer: EstimateObserver) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)
