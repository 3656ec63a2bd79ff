"""
Scatter smoothers for pairs such as (EPAP, AHI) or (usage hours, AHI).

Both smoothers work on the k nearest x-neighbours of each evaluation point,
so they follow sparse regions of the scatter without a fixed-width window.
"""

import logging
import math

import numpy as np

from cpap_insight.analysis.statistics.primitives import (
    ArrayLike,
    as_float_array,
    quantile,
)
from cpap_insight.constants import SmoothingConstants as SMC

logger = logging.getLogger(__name__)

__all__ = ["loess_smooth", "running_quantile_xy"]


def _finite_pairs(x: ArrayLike, y: ArrayLike) -> tuple[np.ndarray, np.ndarray]:
    """Pairs with both coordinates finite, sorted by x."""
    xa = as_float_array(x)
    ya = as_float_array(y)
    n = min(xa.size, ya.size)
    xa, ya = xa[:n], ya[:n]
    mask = np.isfinite(xa) & np.isfinite(ya)
    xa, ya = xa[mask], ya[mask]
    order = np.argsort(xa, kind="stable")
    return xa[order], ya[order]


def _nearest(px: np.ndarray, x0: float, count: int) -> np.ndarray:
    """Indices of the `count` points closest to x0 (ties go to the lower x)."""
    distance = np.abs(px - x0)
    return np.argsort(distance, kind="stable")[:count]


def _tricube(u: np.ndarray) -> np.ndarray:
    return np.clip(1.0 - np.abs(u) ** 3, 0.0, None) ** 3


def loess_smooth(
    x: ArrayLike,
    y: ArrayLike,
    xs: ArrayLike,
    alpha: float = SMC.LOESS_BANDWIDTH,
) -> np.ndarray:
    """
    Locally weighted linear regression evaluated at `xs`.

    For each evaluation point the nearest floor(alpha * n) pairs (at least 2)
    are weighted with the tricube kernel of their distance, scaled by the
    farthest neighbour, and a weighted least-squares line is fitted. When
    the neighbours share a single x value the fit falls back to their
    weighted mean.

    Args:
        x: Predictor values
        y: Response values, index-aligned with x (extra tail values ignored)
        xs: Evaluation points
        alpha: Fraction of the pairs used in each local fit

    Returns:
        Smoothed values at xs; empty for empty xs, NaN where no pairs are
        available or every neighbour has zero weight

    Raises:
        ValueError: If alpha is not in (0, 1]
    """
    if not (0.0 < alpha <= 1.0):
        raise ValueError(f"alpha must be in (0, 1], got {alpha}")
    points = as_float_array(xs)
    px, py = _finite_pairs(x, y)
    result = np.full(points.size, math.nan)
    if px.size == 0:
        return result

    span = max(SMC.LOESS_MIN_NEIGHBORS, int(math.floor(alpha * px.size)))
    for i, x0 in enumerate(points):
        if not math.isfinite(x0):
            continue
        idx = _nearest(px, x0, span)
        nx, ny = px[idx], py[idx]
        max_d = float(np.max(np.abs(nx - x0))) or 1.0
        w = _tricube((nx - x0) / max_d)

        sw = float(w.sum())
        if sw == 0:
            continue
        swx = float(w @ nx)
        swy = float(w @ ny)
        den = sw * float(w @ (nx * nx)) - swx * swx
        slope = (sw * float(w @ (nx * ny)) - swx * swy) / den if den != 0 else 0.0
        intercept = (swy - slope * swx) / sw
        result[i] = intercept + slope * x0

    return result


def running_quantile_xy(
    x: ArrayLike,
    y: ArrayLike,
    xs: ArrayLike,
    q: float = 0.5,
    k: int = SMC.RUNNING_QUANTILE_K,
) -> np.ndarray:
    """
    Quantile of y over the k nearest x-neighbours of each evaluation point.

    Args:
        x: Predictor values
        y: Response values, index-aligned with x
        xs: Evaluation points
        q: Quantile in [0, 1]
        k: Neighbourhood size (at least 3, at most the number of pairs)

    Returns:
        Running quantile at xs; NaN where no pairs are available
    """
    points = as_float_array(xs)
    px, py = _finite_pairs(x, y)
    result = np.full(points.size, math.nan)
    if px.size == 0:
        return result

    count = max(SMC.RUNNING_QUANTILE_MIN_NEIGHBORS, min(k, px.size))
    for i, x0 in enumerate(points):
        if math.isfinite(x0):
            result[i] = quantile(py[_nearest(px, x0, count)], q)

    logger.debug(f"Running q={q} over {px.size} pairs with k={count}")
    return result
