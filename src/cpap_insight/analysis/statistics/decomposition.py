"""
Seasonal-trend decomposition and change-point detection for nightly series.

The weekly cycle (weekday vs. weekend usage) is the dominant seasonal
pattern in therapy data, so the default season length is 7 nights.
"""

import logging
import math

from collections.abc import Sequence
from datetime import date

import numpy as np

from cpap_insight.analysis.statistics.primitives import ArrayLike, as_float_array
from cpap_insight.analysis.statistics.types import ChangePoint, Decomposition
from cpap_insight.constants import StatisticsConstants as SC

logger = logging.getLogger(__name__)

__all__ = ["stl_decompose", "detect_change_points"]


def _moving_average_weights(season_length: int) -> np.ndarray:
    """Centered moving-average weights; even lengths use the 2 x m filter."""
    if season_length % 2 == 1:
        return np.ones(season_length) / season_length
    weights = np.ones(season_length + 1)
    weights[0] = weights[-1] = 0.5
    return weights / season_length


def _centered_moving_average(x: np.ndarray, season_length: int) -> np.ndarray:
    """
    Centered moving average that renormalizes over the available window.

    Windows truncated at the series edges, or containing NaNs, average
    whatever finite values remain. Positions with no finite neighbours are
    filled by linear interpolation of the surrounding trend.
    """
    weights = _moving_average_weights(season_length)
    half = len(weights) // 2
    n = x.size
    trend = np.full(n, math.nan)

    for i in range(n):
        lo = max(0, i - half)
        hi = min(n, i + half + 1)
        window = x[lo:hi]
        w = weights[lo - (i - half) : len(weights) - ((i + half + 1) - hi)]
        mask = np.isfinite(window)
        if mask.any():
            trend[i] = float(np.sum(window[mask] * w[mask]) / np.sum(w[mask]))

    missing = ~np.isfinite(trend)
    if missing.any() and (~missing).any():
        idx = np.arange(n)
        trend[missing] = np.interp(idx[missing], idx[~missing], trend[~missing])
    return trend


def _seasonal_pattern(detrended: np.ndarray, season_length: int) -> np.ndarray:
    """Mean detrended value per season position, centered to sum to zero."""
    positions = np.arange(detrended.size) % season_length
    means = np.zeros(season_length)
    for pos in range(season_length):
        vals = detrended[positions == pos]
        vals = vals[np.isfinite(vals)]
        if vals.size:
            means[pos] = vals.mean()
    means -= means.mean()
    return means[positions]


def stl_decompose(
    values: ArrayLike,
    season_length: int = SC.STL_SEASON_LENGTH,
    iterations: int = SC.STL_ITERATIONS,
) -> Decomposition:
    """
    Split a series into trend, seasonal, and residual components.

    Each pass estimates the trend with a centered moving average of the
    deseasonalized series, then the seasonal pattern from the detrended
    series grouped by position modulo season_length. The residual is
    computed last as input - trend - seasonal so the three components always
    reconstruct the input.

    Degenerate input (length 1 or shorter than season_length) returns the
    input as trend with zero seasonal and residual components.

    Args:
        values: Series values in date order (NaN = missing)
        season_length: Length of the repeating cycle, in samples
        iterations: Number of trend/seasonal refinement passes

    Returns:
        Decomposition with components the same length as the input

    Raises:
        ValueError: If season_length or iterations is not a positive integer
    """
    if isinstance(season_length, bool) or not isinstance(season_length, int):
        raise ValueError(f"season_length must be an integer, got {season_length!r}")
    if season_length <= 0:
        raise ValueError(f"season_length must be positive, got {season_length}")
    if iterations < 1:
        raise ValueError(f"iterations must be at least 1, got {iterations}")

    x = as_float_array(values)
    n = x.size

    if n <= 1 or n < season_length:
        logger.debug(
            f"Series of length {n} too short for season length {season_length}; "
            "returning degenerate decomposition"
        )
        return Decomposition(
            trend=x.tolist(),
            seasonal=[0.0] * n,
            residual=[0.0] * n,
            season_length=season_length,
        )

    seasonal = np.zeros(n)
    trend = np.zeros(n)
    for _ in range(iterations):
        trend = _centered_moving_average(x - seasonal, season_length)
        seasonal = _seasonal_pattern(x - trend, season_length)

    residual = x - trend - seasonal

    return Decomposition(
        trend=trend.tolist(),
        seasonal=seasonal.tolist(),
        residual=residual.tolist(),
        season_length=season_length,
    )


def detect_change_points(
    values: ArrayLike,
    dates: Sequence[date],
    penalty: float = SC.CHANGEPOINT_PENALTY,
    window_size: int = SC.CHANGEPOINT_MIN_SEGMENT,
) -> list[ChangePoint]:
    """
    Find mean shifts by penalized least-squares segmentation.

    Exact optimal partitioning over segment boundaries: each segment costs
    its sum of squared deviations from the segment mean plus `penalty`, and
    every segment holds at least `window_size` samples. Non-finite samples
    are skipped. O(n^2) in the number of finite samples, which is fine for
    nightly series spanning a few years.

    Args:
        values: Series values in date order (NaN = missing)
        dates: Date for each value
        penalty: Cost added per segment; larger values find fewer breaks
        window_size: Minimum samples per segment

    Returns:
        Change points in date order, empty if no break is found

    Raises:
        ValueError: If penalty is negative or window_size is below 1
    """
    if penalty < 0:
        raise ValueError(f"penalty must be non-negative, got {penalty}")
    if window_size < 1:
        raise ValueError(f"window_size must be at least 1, got {window_size}")

    x = as_float_array(values)
    if x.size != len(dates):
        logger.warning(
            f"Change-point input has {x.size} values but {len(dates)} dates; skipping"
        )
        return []

    idx = np.flatnonzero(np.isfinite(x))
    y = x[idx]
    m = y.size
    if m < 2 * window_size:
        return []

    s1 = np.concatenate([[0.0], np.cumsum(y)])
    s2 = np.concatenate([[0.0], np.cumsum(y * y)])

    def cost(a: int, b: int) -> float:
        length = b - a
        total = s1[b] - s1[a]
        return float(s2[b] - s2[a] - total * total / length)

    best = np.full(m + 1, math.inf)
    best[0] = -penalty
    prev = np.zeros(m + 1, dtype=int)
    for t in range(window_size, m + 1):
        for s in range(0, t - window_size + 1):
            if not math.isfinite(best[s]):
                continue
            candidate = best[s] + cost(s, t) + penalty
            if candidate < best[t]:
                best[t] = candidate
                prev[t] = s

    boundaries: list[int] = []
    t = m
    while t > 0:
        s = int(prev[t])
        boundaries.append(s)
        t = s
    boundaries.reverse()
    starts = boundaries + [m]

    points: list[ChangePoint] = []
    for k in range(1, len(starts) - 1):
        a, b, c = starts[k - 1], starts[k], starts[k + 1]
        pos = int(idx[b])
        points.append(
            ChangePoint(
                date=dates[pos],
                index=pos,
                mean_before=float(y[a:b].mean()),
                mean_after=float(y[b:c].mean()),
            )
        )

    logger.debug(f"Detected {len(points)} change point(s) in {m} samples")
    return points
