"""Inputs shared by every estimator strategy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from recomp.config.settings import EngineConfig
from recomp.tracking.conditioning import ConditionedSeries
from recomp.tracking.quality import DataQualityCheck

if TYPE_CHECKING:
    from recomp.tracking.formula import ActivityConfig
    from recomp.tracking.models import TDEEEstimate, UserProfile


@dataclass(frozen=True)
class EstimationContext:
    """Everything a strategy may read. Strategies never mutate it."""

    series: ConditionedSeries
    quality: DataQualityCheck
    profile: Optional["UserProfile"] = None
    activity: Optional["ActivityConfig"] = None
    formula: Optional["TDEEEstimate"] = None
    config: EngineConfig = field(default_factory=EngineConfig)

    @property
    def current_weight(self) -> Optional[float]:
        return self.series.current_weight

    @property
    def formula_tdee(self) -> Optional[float]:
        return self.formula.estimated_tdee if self.formula else None
