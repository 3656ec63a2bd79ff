"""
Autocorrelation and partial autocorrelation with lag-stability diagnostics.

Nightly metrics (usage hours, AHI, leak) are short and gappy, so both
functions work on pairwise-available values: a missing night reduces the
number of pairs at each lag instead of discarding the whole series.
"""

import logging
import math

import numpy as np

from cpap_insight.analysis.statistics.primitives import (
    ArrayLike,
    as_float_array,
    partial_correlation,
)
from cpap_insight.analysis.statistics.types import (
    AutocorrelationResult,
    AutocorrelationValue,
    PartialAutocorrelationMeta,
    PartialAutocorrelationResult,
    PartialAutocorrelationValue,
)
from cpap_insight.constants import StatisticsConstants as SC

logger = logging.getLogger(__name__)

__all__ = [
    "compute_autocorrelation",
    "compute_partial_autocorrelation",
    "recommended_max_lag",
]


def _validate_max_lag(max_lag: int) -> None:
    if isinstance(max_lag, bool) or not isinstance(max_lag, int):
        raise ValueError(f"max_lag must be an integer, got {max_lag!r}")
    if max_lag < 0 or max_lag > SC.MAX_LAG_INPUT:
        raise ValueError(
            f"max_lag must be between 0 and {SC.MAX_LAG_INPUT}, got {max_lag}"
        )


def _confidence_band(sample_size: int) -> float:
    if sample_size <= 0:
        return math.nan
    return SC.CONFIDENCE_Z / math.sqrt(sample_size)


def recommended_max_lag(sample_size: int) -> int:
    """Largest lag whose partial autocorrelation is considered stable."""
    return min(sample_size // SC.RECOMMENDED_LAG_DIVISOR, SC.MAX_RECOMMENDED_LAG)


def compute_autocorrelation(
    values: ArrayLike, max_lag: int = SC.DEFAULT_MAX_LAG
) -> AutocorrelationResult:
    """
    Sample autocorrelation function for lags 0..max_lag.

    Uses the standard estimator: deviations from the mean of all finite
    values, summed over the pairs available at each lag and divided by the
    total sum of squares. For [1, 2, 3, 4, 5] this gives
    [1, 0.4, -0.1, -0.4, -0.4].

    Args:
        values: Series values in date order (NaN = missing)
        max_lag: Highest lag to evaluate

    Returns:
        AutocorrelationResult; lags with no pairs or a constant series yield NaN

    Raises:
        ValueError: If max_lag is not an integer in [0, MAX_LAG_INPUT]
    """
    _validate_max_lag(max_lag)
    x = as_float_array(values)
    finite = np.isfinite(x)
    sample_size = int(finite.sum())

    result: list[AutocorrelationValue] = []
    if sample_size == 0:
        for lag in range(max_lag + 1):
            result.append(AutocorrelationValue(lag=lag, autocorrelation=math.nan, pairs=0))
        return AutocorrelationResult(values=result, sample_size=0)

    dev = np.where(finite, x - x[finite].mean(), math.nan)
    denom = float(np.sum(dev[finite] ** 2))

    for lag in range(max_lag + 1):
        if lag >= x.size:
            result.append(AutocorrelationValue(lag=lag, autocorrelation=math.nan, pairs=0))
            continue
        prod = dev[: x.size - lag] * dev[lag:]
        valid = np.isfinite(prod)
        pairs = int(valid.sum())
        if pairs == 0 or denom == 0.0:
            value = math.nan
        else:
            value = float(prod[valid].sum()) / denom
        result.append(AutocorrelationValue(lag=lag, autocorrelation=value, pairs=pairs))

    logger.debug(f"ACF computed for {sample_size} samples up to lag {max_lag}")
    return AutocorrelationResult(
        values=result,
        sample_size=sample_size,
        confidence=_confidence_band(sample_size),
    )


def _lag_rows(x: np.ndarray, lag: int) -> tuple[np.ndarray, np.ndarray, list[np.ndarray]]:
    """Split x into (x_t, x_t+lag, [x_t+1 .. x_t+lag-1]) aligned on t."""
    rows = x.size - lag
    lead = x[:rows]
    lagged = x[lag : lag + rows]
    intermediates = [x[j : j + rows] for j in range(1, lag)]
    return lead, lagged, intermediates


def compute_partial_autocorrelation(
    values: ArrayLike, max_lag: int = SC.DEFAULT_MAX_LAG
) -> PartialAutocorrelationResult:
    """
    Partial autocorrelation function for lags 1..max_lag.

    Lag 1 equals the lag-1 autocorrelation. For lag k > 1 the value is the
    partial correlation of x_t and x_t+k controlling for x_t+1 .. x_t+k-1,
    computed over rows where every term is finite.

    Lags above min(floor(n / 3), 40) are reported in meta.unstable_lags and
    their value is set to NaN. A warning is attached whenever max_lag exceeds
    that recommendation.

    Args:
        values: Series values in date order (NaN = missing)
        max_lag: Highest lag to evaluate

    Returns:
        PartialAutocorrelationResult with stability metadata

    Raises:
        ValueError: If max_lag is not an integer in [0, MAX_LAG_INPUT]
    """
    _validate_max_lag(max_lag)
    x = as_float_array(values)
    sample_size = int(np.isfinite(x).sum())
    recommended = recommended_max_lag(sample_size)

    warnings: list[str] = []
    unstable: list[int] = []
    if max_lag > recommended:
        message = (
            f"Requested max lag {max_lag} exceeds recommended {recommended} "
            f"for {sample_size} samples; partial autocorrelation above lag "
            f"{recommended} is unstable and reported as NaN"
        )
        warnings.append(message)
        logger.warning(message)

    acf = compute_autocorrelation(x, min(max_lag, 1)) if max_lag >= 1 else None

    result: list[PartialAutocorrelationValue] = []
    for lag in range(1, max_lag + 1):
        if lag >= x.size:
            pairs = 0
            value = math.nan
        elif lag == 1 and acf is not None:
            pairs = acf.values[1].pairs
            value = acf.values[1].autocorrelation
        else:
            lead, lagged, intermediates = _lag_rows(x, lag)
            complete = np.isfinite(lead) & np.isfinite(lagged)
            for col in intermediates:
                complete &= np.isfinite(col)
            pairs = int(complete.sum())
            value = (
                math.nan
                if lag > recommended
                else partial_correlation(lead, lagged, intermediates)
            )

        if lag > recommended:
            unstable.append(lag)
            value = math.nan

        result.append(
            PartialAutocorrelationValue(lag=lag, partial_autocorrelation=value, pairs=pairs)
        )

    return PartialAutocorrelationResult(
        values=result,
        sample_size=sample_size,
        confidence=_confidence_band(sample_size),
        meta=PartialAutocorrelationMeta(
            recommended_max_lag=recommended,
            unstable_lags=unstable,
            warnings=warnings,
        ),
    )
