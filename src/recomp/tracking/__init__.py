"""Adaptive TDEE estimation from daily weight and intake logs.

Key components:
- Quality gate and series conditioning (gap-aware EWMA, keying-error rejection)
- Baseline regression of mass change on intake
- Activity-augmented model fitted by projected gradient descent
- Formula fallback (Mifflin-St Jeor / Katch-McArdle)
- Strategy chain selector, history and target sync decisions
- Weight trajectory projection
"""

from __future__ import annotations

from recomp.tracking.engine import EngineResult, recompute_estimate
from recomp.tracking.models import (
    Confidence,
    DailyDataPoint,
    EnhancedTDEEEstimate,
    EstimateSource,
    MassUnit,
    TDEEEstimate,
    UserProfile,
    WeightPrediction,
)
from recomp.tracking.projection import predict_weight, predict_weights
from recomp.tracking.store import EstimateStore

__all__ = [
    "Confidence",
    "DailyDataPoint",
    "EngineResult",
    "EnhancedTDEEEstimate",
    "EstimateSource",
    "EstimateStore",
    "MassUnit",
    "TDEEEstimate",
    "UserProfile",
    "WeightPrediction",
    "predict_weight",
    "predict_weights",
    "recompute_estimate",
]
