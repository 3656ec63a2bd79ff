"""
Imputation of missing wearable fields on aligned nights.

Only fields that are genuinely missing (None) are filled, and every filled
field is listed in AlignedNight.imputed_fields so downstream analysis can
discount imputed nights.
"""

import logging
import math

import numpy as np

from cpap_insight.analysis.sync.types import AlignedNight
from cpap_insight.constants import AlignmentConstants as AC
from cpap_insight.constants import ImputationMethod

logger = logging.getLogger(__name__)

__all__ = ["IMPUTATION_TARGETS", "impute_missing_values"]

# Wearable field -> device fields used as regression predictors
IMPUTATION_TARGETS: dict[str, tuple[str, ...]] = {
    "hrv_rmssd": ("ahi", "usage_hours", "median_epap"),
    "avg_sleep_hr": ("ahi", "usage_hours"),
    "min_spo2": ("ahi",),
    "sleep_efficiency": ("ahi", "usage_hours", "leak_median"),
}

_PLAUSIBLE_BOUNDS: dict[str, tuple[float, float]] = {
    "hrv_rmssd": (AC.HRV_PLAUSIBLE_MIN, math.inf),
    "avg_sleep_hr": (AC.HR_PLAUSIBLE_MIN, AC.HR_PLAUSIBLE_MAX),
    "min_spo2": (0.0, 100.0),
    "sleep_efficiency": (0.0, 100.0),
}


def _predictor_row(
    night: AlignedNight, predictors: tuple[str, ...]
) -> list[float] | None:
    row = [getattr(night.device, p) for p in predictors]
    if any(v is None for v in row):
        return None
    return [float(v) for v in row]


def _fit(
    nights: list[AlignedNight], target: str, predictors: tuple[str, ...]
) -> tuple[np.ndarray | None, float] | None:
    """
    Fit target ~ predictors on complete nights.

    Returns:
        (coefficients or None, target mean), or None with too few complete nights
    """
    observed = [n for n in nights if getattr(n.wearable, target) is not None]
    if len(observed) < AC.MIN_COMPLETE_RECORDS:
        return None
    mean = float(np.mean([getattr(n.wearable, target) for n in observed]))

    rows, ys = [], []
    for night in observed:
        row = _predictor_row(night, predictors)
        if row is not None:
            rows.append([1.0, *row])
            ys.append(float(getattr(night.wearable, target)))

    coef = None
    if len(rows) >= max(AC.MIN_COMPLETE_RECORDS, len(predictors) + 1):
        coef, _, _, _ = np.linalg.lstsq(np.array(rows), np.array(ys), rcond=None)
    return coef, mean


def impute_missing_values(
    nights: list[AlignedNight],
    method: str | ImputationMethod = ImputationMethod.REGRESSION,
) -> list[AlignedNight]:
    """
    Fill missing wearable fields from the other aligned nights.

    "regression" predicts each field from device metrics by ordinary least
    squares, falling back to the mean when a night lacks a predictor. "mean"
    uses the field mean. A field with fewer than MIN_COMPLETE_RECORDS
    observed nights is left untouched. Predictions are clipped to
    physiologically plausible bounds.

    Args:
        nights: Aligned nights
        method: Imputation method

    Returns:
        New AlignedNight objects (unchanged nights are returned as-is)

    Raises:
        ValueError: If the method is not recognized
    """
    try:
        method = ImputationMethod(method)
    except ValueError:
        raise ValueError(
            f"Unknown imputation method: {method}. "
            f"Available: {[m.value for m in ImputationMethod]}"
        ) from None

    models: dict[str, tuple[np.ndarray | None, float]] = {}
    for target, predictors in IMPUTATION_TARGETS.items():
        fitted = _fit(nights, target, predictors)
        if fitted is None:
            logger.warning(
                f"Not enough complete nights to impute {target}; leaving it missing"
            )
            continue
        models[target] = fitted

    result: list[AlignedNight] = []
    filled_count = 0
    for night in nights:
        updates: dict[str, float] = {}
        for target, (coef, mean) in models.items():
            if getattr(night.wearable, target) is not None:
                continue
            value = mean
            row = _predictor_row(night, IMPUTATION_TARGETS[target])
            use_regression = method is ImputationMethod.REGRESSION and coef is not None
            if use_regression and row is not None:
                value = float(np.dot(coef, [1.0, *row]))
            lo, hi = _PLAUSIBLE_BOUNDS[target]
            updates[target] = min(max(value, lo), hi)

        if not updates:
            result.append(night)
            continue
        filled_count += len(updates)
        result.append(
            night.model_copy(
                update={
                    "wearable": night.wearable.model_copy(update=updates),
                    "imputed_fields": night.imputed_fields + sorted(updates),
                }
            )
        )

    logger.info(f"Imputed {filled_count} field(s) using {method.value}")
    return result
