"""Distribution summaries over nightly metrics."""

import math

import numpy as np

from cpap_insight.analysis.statistics.primitives import (
    ArrayLike,
    as_float_array,
    quantile,
)
from cpap_insight.analysis.statistics.types import ValueSummary


def summarize_values(values: ArrayLike) -> ValueSummary:
    """
    Count, mean, extremes and quantiles of the finite values.

    Args:
        values: Sample values (NaN/inf ignored)

    Returns:
        ValueSummary with NaN statistics when no finite values remain
    """
    arr = as_float_array(values)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        return ValueSummary(count=0)

    return ValueSummary(
        count=int(arr.size),
        mean=float(arr.mean()),
        median=quantile(arr, 0.5),
        min=float(arr.min()),
        max=float(arr.max()),
        p05=quantile(arr, 0.05),
        p25=quantile(arr, 0.25),
        p75=quantile(arr, 0.75),
        p95=quantile(arr, 0.95),
    )


def iqr_outliers(values: ArrayLike, factor: float = 1.5) -> list[int]:
    """
    Indices of values outside the Tukey fences.

    Args:
        values: Sample values
        factor: Fence multiplier on the interquartile range

    Returns:
        Positions of outlying finite values
    """
    arr = as_float_array(values)
    q1 = quantile(arr, 0.25)
    q3 = quantile(arr, 0.75)
    if math.isnan(q1) or math.isnan(q3):
        return []
    spread = q3 - q1
    lo, hi = q1 - factor * spread, q3 + factor * spread
    return [i for i, v in enumerate(arr) if math.isfinite(v) and (v < lo or v > hi)]
