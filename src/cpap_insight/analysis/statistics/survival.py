"""Kaplan-Meier survival estimation with Greenwood log-log confidence bounds."""

import logging
import math

import numpy as np

from cpap_insight.analysis.statistics.primitives import ArrayLike, as_float_array
from cpap_insight.analysis.statistics.types import SurvivalCurve
from cpap_insight.constants import StatisticsConstants as SC

logger = logging.getLogger(__name__)

__all__ = ["km_survival"]


def km_survival(durations: ArrayLike, z: float = SC.CONFIDENCE_Z) -> SurvivalCurve:
    """
    Product-limit survival curve over distinct observed times.

    Every duration is treated as an observed event (no censoring), e.g. the
    length of each apnea event or each therapy session. Non-finite and
    negative durations are dropped.

    The confidence band uses the log(-log S) transform with Greenwood's
    variance. The transform is undefined at S == 0 and S == 1, so the bounds
    are NaN there.

    Args:
        durations: Observed times
        z: Normal critical value for the band

    Returns:
        SurvivalCurve, empty when no valid durations remain
    """
    arr = as_float_array(durations)
    arr = np.sort(arr[np.isfinite(arr) & (arr >= 0)])
    if arr.size == 0:
        return SurvivalCurve()

    times, counts = np.unique(arr, return_counts=True)
    at_risk = arr.size
    surv = 1.0
    greenwood = 0.0

    curve = SurvivalCurve()
    for t, d in zip(times, counts):
        n_i = at_risk
        d_i = int(d)
        surv *= 1.0 - d_i / n_i
        if n_i > d_i:
            greenwood += d_i / (n_i * (n_i - d_i))

        lower = upper = math.nan
        if 0.0 < surv < 1.0:
            log_s = math.log(surv)
            log_log = math.log(-log_s)
            se = math.sqrt(greenwood) / abs(log_s)
            lower = math.exp(-math.exp(log_log + z * se))
            upper = math.exp(-math.exp(log_log - z * se))

        curve.times.append(float(t))
        curve.survival.append(surv)
        curve.lower.append(lower)
        curve.upper.append(upper)
        curve.at_risk.append(n_i)
        curve.events.append(d_i)
        at_risk -= d_i

    logger.debug(f"Kaplan-Meier curve built from {arr.size} durations")
    return curve
