"""Body composition: scans, partition ratio model, calibration and predictions.

Key components:
- Reconciled DEXA scans with declarative measurement confidence
- Covariate P-ratio model with sex and enhancement bounds
- Personal calibration from consecutive scan pairs
- Fat/lean predictions with optimistic, expected and pessimistic cases
"""

from __future__ import annotations

from recomp.bodycomp.calibration import analyze_scan_pair, calibrate_p_ratio
from recomp.bodycomp.models import (
    BodyCompPrediction,
    CalibrationTier,
    DEXAScan,
    PRatioInputs,
    ScanConditions,
    ScanConfidence,
    TrainingAge,
)
from recomp.bodycomp.p_ratio import calculate_p_ratio
from recomp.bodycomp.prediction import (
    compare_prediction_to_scan,
    forecast_body_composition,
    generate_weight_scenarios,
    predict_body_composition,
    prediction_to_dict,
)
from recomp.bodycomp.profile import UserBodyCompProfile, add_scan, correct_scan, remove_scan
from recomp.bodycomp.scan_confidence import score_scan

__all__ = [
    "BodyCompPrediction",
    "CalibrationTier",
    "DEXAScan",
    "PRatioInputs",
    "ScanConditions",
    "ScanConfidence",
    "TrainingAge",
    "UserBodyCompProfile",
    "add_scan",
    "analyze_scan_pair",
    "calculate_p_ratio",
    "calibrate_p_ratio",
    "compare_prediction_to_scan",
    "correct_scan",
    "forecast_body_composition",
    "generate_weight_scenarios",
    "predict_body_composition",
    "prediction_to_dict",
    "remove_scan",
    "score_scan",
]
