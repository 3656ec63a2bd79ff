"""
Core statistics primitives shared by every analysis module.

These functions never raise on malformed numeric input. Non-finite values
are treated as missing and a result that cannot be computed is returned as
NaN, leaving the caller to decide whether to drop or report it.
"""

import math

from collections.abc import Sequence

import numpy as np

from scipy import special, stats

ArrayLike = Sequence[float] | np.ndarray

__all__ = [
    "ArrayLike",
    "as_float_array",
    "quantile",
    "pearson",
    "ols_residuals",
    "partial_correlation",
    "normal_cdf",
    "normal_quantile",
    "assign_ranks",
    "wilson_interval",
]


def as_float_array(values: ArrayLike | None) -> np.ndarray:
    """Convert a sequence to a 1-D float array, mapping None to NaN."""
    if values is None:
        return np.array([], dtype=float)
    if isinstance(values, np.ndarray):
        return values.astype(float, copy=False).ravel()
    return np.array([math.nan if v is None else v for v in values], dtype=float)


def quantile(values: ArrayLike, p: float) -> float:
    """
    Linear-interpolation (type 7) quantile over the finite values.

    Args:
        values: Sample values (NaN/inf ignored)
        p: Probability in [0, 1]

    Returns:
        Quantile value, or NaN for empty input or p outside [0, 1]
    """
    arr = as_float_array(values)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0 or not (0.0 <= p <= 1.0):
        return math.nan
    return float(np.quantile(arr, p, method="linear"))


def pearson(x: ArrayLike, y: ArrayLike) -> float:
    """
    Pearson correlation over index-aligned pairs.

    Pairs where either value is non-finite are dropped before computing.

    Returns:
        Correlation in [-1, 1], or NaN with fewer than 2 valid pairs, zero
        variance, or mismatched lengths
    """
    xa = as_float_array(x)
    ya = as_float_array(y)
    if xa.size != ya.size:
        return math.nan

    mask = np.isfinite(xa) & np.isfinite(ya)
    if mask.sum() < 2:
        return math.nan

    xv = xa[mask] - xa[mask].mean()
    yv = ya[mask] - ya[mask].mean()
    denom = math.sqrt(float(np.dot(xv, xv)) * float(np.dot(yv, yv)))
    if denom == 0.0:
        return math.nan
    r = float(np.dot(xv, yv)) / denom
    return max(-1.0, min(1.0, r))


def ols_residuals(y: np.ndarray, controls: np.ndarray) -> np.ndarray:
    """
    Residuals of y after least-squares regression on controls plus intercept.

    Args:
        y: Response, shape (n,)
        controls: Design columns, shape (n, m)

    Returns:
        Residual vector, all NaN if the fit is not possible
    """
    n = y.shape[0]
    design = np.column_stack([np.ones(n), controls.reshape(n, -1)])
    coef, _, rank, _ = np.linalg.lstsq(design, y, rcond=None)
    if rank == 0:
        return np.full(n, math.nan)
    return y - design @ coef


def partial_correlation(
    x: ArrayLike, y: ArrayLike, controls: Sequence[ArrayLike] | None = None
) -> float:
    """
    Correlation of x and y after removing the linear effect of controls.

    Rows with any non-finite value (in x, y, or a control) are dropped.
    With no controls this is plain Pearson correlation.

    Args:
        x: First variable
        y: Second variable
        controls: Zero or more control variables, each index-aligned with x

    Returns:
        Partial correlation, or NaN when fewer than 3 complete rows remain
        or too few rows for the number of controls
    """
    if not controls:
        return pearson(x, y)

    xa = as_float_array(x)
    ya = as_float_array(y)
    ctrl = [as_float_array(c) for c in controls]
    if any(c.size != xa.size for c in ctrl) or ya.size != xa.size:
        return math.nan

    z = np.column_stack(ctrl)
    mask = np.isfinite(xa) & np.isfinite(ya) & np.isfinite(z).all(axis=1)
    n = int(mask.sum())
    if n < 3 or n < z.shape[1] + 3:
        return math.nan

    rx = ols_residuals(xa[mask], z[mask])
    ry = ols_residuals(ya[mask], z[mask])
    return pearson(rx, ry)


def normal_cdf(x: float) -> float:
    """Standard normal cumulative distribution function (NaN propagates)."""
    return float(special.ndtr(x))


def normal_quantile(p: float) -> float:
    """
    Inverse of the standard normal CDF.

    Returns:
        -inf at p == 0, +inf at p == 1, NaN outside [0, 1]
    """
    if not (0.0 <= p <= 1.0):
        return math.nan
    return float(special.ndtri(p))


def assign_ranks(values: ArrayLike) -> np.ndarray:
    """
    1-based average ranks with ties sharing their mean rank.

    Non-finite values receive a NaN rank and do not occupy rank positions.
    """
    arr = as_float_array(values)
    ranks = np.full(arr.size, math.nan)
    mask = np.isfinite(arr)
    if mask.any():
        ranks[mask] = stats.rankdata(arr[mask], method="average")
    return ranks


def wilson_interval(proportion: float, n: float, z: float = 1.96) -> tuple[float, float]:
    """
    Wilson score interval for a binomial proportion.

    Args:
        proportion: Observed success fraction in [0, 1]
        n: Number of trials
        z: Normal critical value

    Returns:
        (low, high), NaN bounds when n <= 0 or proportion is not finite
    """
    if n <= 0 or not math.isfinite(proportion):
        return math.nan, math.nan
    z2 = z * z
    denom = 1 + z2 / n
    center = (proportion + z2 / (2 * n)) / denom
    half = z * math.sqrt(proportion * (1 - proportion) / n + z2 / (4 * n * n)) / denom
    return max(0.0, center - half), min(1.0, center + half)
