"""
Correlation and lagged-causality tests between aligned nightly series.

Short or mostly-missing series never raise: results come back with NaN
statistics, the sample size, and a warning explaining why.
"""

import logging
import math

import numpy as np

from scipy import stats

from cpap_insight.analysis.statistics.primitives import (
    ArrayLike,
    as_float_array,
    pearson,
)
from cpap_insight.analysis.sync.types import (
    AlignedNight,
    CorrelationFinding,
    CrossCorrelationResult,
    GrangerResult,
    LagCorrelation,
    SpearmanResult,
)
from cpap_insight.constants import CorrelationConstants as CC
from cpap_insight.constants import StatisticsConstants as SC

logger = logging.getLogger(__name__)

__all__ = [
    "spearman_correlation",
    "cross_correlation",
    "granger_causality_test",
    "aligned_values",
    "compute_cross_sensor_correlations",
    "HYPOTHESIS_PAIRS",
]

# (x field, y field, hypothesis); fields are "device.<attr>" or "wearable.<attr>"
HYPOTHESIS_PAIRS: list[tuple[str, str, str]] = [
    ("device.ahi", "wearable.hrv_rmssd", "Higher AHI lowers overnight HRV"),
    ("device.ahi", "wearable.resting_hr", "Higher AHI raises resting heart rate"),
    ("device.ahi", "wearable.min_spo2", "Higher AHI deepens oxygen desaturation"),
    ("device.leak_median", "wearable.sleep_efficiency", "Mask leak disrupts sleep"),
    ("device.median_epap", "wearable.deep_sleep_minutes", "Pressure relates to deep sleep"),
    ("device.usage_hours", "wearable.sleep_efficiency", "Longer usage improves sleep"),
]


def _check_lengths(x: np.ndarray, y: np.ndarray) -> None:
    if x.size != y.size:
        raise ValueError(f"Series lengths differ: {x.size} vs {y.size}")


def spearman_correlation(x: ArrayLike, y: ArrayLike) -> SpearmanResult:
    """
    Spearman rank correlation over pairs where both values are finite.

    Args:
        x: First series
        y: Second series, index-aligned with x

    Returns:
        SpearmanResult; NaN with a warning for fewer than 3 pairs or
        constant input

    Raises:
        ValueError: If x and y have different lengths
    """
    xa = as_float_array(x)
    ya = as_float_array(y)
    _check_lengths(xa, ya)

    mask = np.isfinite(xa) & np.isfinite(ya)
    n = int(mask.sum())
    if n < CC.SPEARMAN_MIN_SAMPLES:
        return SpearmanResult(
            n=n, warning=f"Insufficient data: {n} pairs (need {CC.SPEARMAN_MIN_SAMPLES})"
        )

    xv, yv = xa[mask], ya[mask]
    if np.ptp(xv) == 0 or np.ptp(yv) == 0:
        return SpearmanResult(n=n, warning="Constant input: correlation undefined")

    res = stats.spearmanr(xv, yv)
    r = float(res.statistic)
    p = 0.0 if abs(r) >= CC.PERFECT_CORRELATION else float(res.pvalue)
    return SpearmanResult(correlation=r, p_value=p, n=n)


def cross_correlation(
    x: ArrayLike, y: ArrayLike, max_lag: int = CC.CROSS_CORRELATION_MAX_LAG
) -> CrossCorrelationResult:
    """
    Pearson correlation of x_t with y_t+lag for lag in -max_lag..max_lag.

    The peak is the lag with the largest |r|; it is significant when |r|
    exceeds the white-noise band 1.96 / sqrt(n).

    Args:
        x: Leading candidate series
        y: Lagging candidate series, index-aligned with x
        max_lag: Largest lag in either direction

    Returns:
        CrossCorrelationResult; NaN with a warning when n < max_lag + 2

    Raises:
        ValueError: If lengths differ or max_lag is negative
    """
    if max_lag < 0:
        raise ValueError(f"max_lag must be non-negative, got {max_lag}")
    xa = as_float_array(x)
    ya = as_float_array(y)
    _check_lengths(xa, ya)
    n = xa.size

    if n < max_lag + 2:
        return CrossCorrelationResult(
            n=n,
            warning=f"Insufficient data: {n} samples for max lag {max_lag}",
        )

    lags: list[LagCorrelation] = []
    for lag in range(-max_lag, max_lag + 1):
        if lag >= 0:
            xs, ys = xa[: n - lag], ya[lag:]
        else:
            xs, ys = xa[-lag:], ya[: n + lag]
        pairs = int((np.isfinite(xs) & np.isfinite(ys)).sum())
        lags.append(LagCorrelation(lag=lag, correlation=pearson(xs, ys), pairs=pairs))

    finite = [lc for lc in lags if math.isfinite(lc.correlation)]
    threshold = SC.CONFIDENCE_Z / math.sqrt(n)
    if not finite:
        return CrossCorrelationResult(
            lags=lags, threshold=threshold, n=n, warning="No computable lag correlations"
        )

    peak = max(finite, key=lambda lc: abs(lc.correlation))
    return CrossCorrelationResult(
        lags=lags,
        peak_lag=peak.lag,
        peak_correlation=peak.correlation,
        threshold=threshold,
        significant=abs(peak.correlation) > threshold,
        n=n,
    )


def _lag_matrix(series: np.ndarray, lag: int, start: int) -> np.ndarray:
    """Columns series[t-1] .. series[t-lag] for t = start..len-1."""
    rows = series.size - start
    return np.column_stack(
        [series[start - j : start - j + rows] for j in range(1, lag + 1)]
    )


def _rss(design: np.ndarray, target: np.ndarray) -> float:
    coef, _, _, _ = np.linalg.lstsq(design, target, rcond=None)
    resid = target - design @ coef
    return float(resid @ resid)


def _granger_rows(
    x: np.ndarray, y: np.ndarray, max_lag: int
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Target and lag columns for every night whose full lag window is observed.

    Lags are taken on the index-aligned series before any filtering, so lag j
    always means j nights earlier even when nights in between are missing.

    Returns:
        (target, effect lags, cause lags) restricted to complete rows
    """
    if y.size <= max_lag:
        empty = np.empty((0, max_lag))
        return np.empty(0), empty, empty

    target = y[max_lag:]
    y_lags = _lag_matrix(y, max_lag, max_lag)
    x_lags = _lag_matrix(x, max_lag, max_lag)
    usable = (
        np.isfinite(target)
        & np.isfinite(y_lags).all(axis=1)
        & np.isfinite(x_lags).all(axis=1)
    )
    return target[usable], y_lags[usable], x_lags[usable]


def granger_causality_test(
    cause: ArrayLike,
    effect: ArrayLike,
    max_lag: int = CC.GRANGER_MAX_LAG,
    alpha: float = CC.SIGNIFICANCE_ALPHA,
) -> GrangerResult:
    """
    Test whether past values of `cause` help predict `effect`.

    Each regression row is one night t with effect[t] and the max_lag
    preceding nights of both series; rows with any missing value are
    dropped. The lag order is chosen by AIC of the unrestricted model over
    1..max_lag, then the restricted autoregression (effect on its own lags)
    is compared with the unrestricted one (plus lags of cause) by an F-test.
    All fits are ordinary least squares on the same rows.

    Args:
        cause: Candidate driver series, one value per night (NaN = missing)
        effect: Response series, index-aligned with cause
        max_lag: Largest lag considered
        alpha: Significance level

    Returns:
        GrangerResult with n = usable rows; NaN with a warning when fewer
        than 2 * max_lag + 10 rows remain

    Raises:
        ValueError: If lengths differ or max_lag < 1
    """
    if max_lag < 1:
        raise ValueError(f"max_lag must be at least 1, got {max_lag}")
    xa = as_float_array(cause)
    ya = as_float_array(effect)
    _check_lengths(xa, ya)

    target, y_lags, x_lags = _granger_rows(xa, ya, max_lag)
    n = int(target.size)
    required = CC.GRANGER_MIN_SAMPLES_FACTOR * max_lag + CC.GRANGER_MIN_SAMPLES_OFFSET
    if n < required:
        return GrangerResult(
            n=n, warning=f"Insufficient data: {n} complete rows (need {required})"
        )

    intercept = np.ones((n, 1))

    best_lag, best_aic = 1, math.inf
    for lag in range(1, max_lag + 1):
        design = np.hstack([intercept, y_lags[:, :lag], x_lags[:, :lag]])
        rss = _rss(design, target)
        if rss <= 0:
            # Exact fit: this order already explains the effect completely
            best_lag = lag
            break
        aic = n * math.log(rss / n) + 2 * design.shape[1]
        if aic < best_aic:
            best_lag, best_aic = lag, aic

    restricted = np.hstack([intercept, y_lags[:, :best_lag]])
    unrestricted = np.hstack([restricted, x_lags[:, :best_lag]])
    rss_r = _rss(restricted, target)
    rss_u = _rss(unrestricted, target)
    df_num = best_lag
    df_den = n - unrestricted.shape[1]

    if df_den <= 0:
        return GrangerResult(
            lag=best_lag, n=n, warning="Degenerate fit: F statistic undefined"
        )
    if rss_u <= 0:
        if rss_r <= 0:
            return GrangerResult(
                lag=best_lag, n=n, warning="Degenerate fit: F statistic undefined"
            )
        return GrangerResult(
            f_statistic=math.inf, p_value=0.0, lag=best_lag, n=n, significant=True
        )

    f_stat = max(0.0, ((rss_r - rss_u) / df_num) / (rss_u / df_den))
    p_value = float(stats.f.sf(f_stat, df_num, df_den))
    logger.debug(f"Granger test: lag={best_lag}, F={f_stat:.3f}, p={p_value:.4f}")

    return GrangerResult(
        f_statistic=f_stat,
        p_value=p_value,
        lag=best_lag,
        n=n,
        significant=p_value < alpha,
    )


def aligned_values(nights: list[AlignedNight], field: str) -> np.ndarray:
    """
    Extract one field from aligned nights as a float array (NaN for None).

    Args:
        nights: Aligned nights in date order
        field: "device.<attr>" or "wearable.<attr>"

    Raises:
        ValueError: If the field does not name a device or wearable attribute
    """
    source, _, attr = field.partition(".")
    if source not in ("device", "wearable") or not attr:
        raise ValueError(f"Field must be 'device.<attr>' or 'wearable.<attr>': {field}")
    values = []
    for night in nights:
        record = getattr(night, source)
        if not hasattr(record, attr):
            raise ValueError(f"Unknown {source} field: {attr}")
        value = getattr(record, attr)
        values.append(math.nan if value is None else float(value))
    return np.array(values, dtype=float)


def _effect_label(r: float) -> str:
    if not math.isfinite(r):
        return "undetermined"
    magnitude = abs(r)
    if magnitude >= CC.EFFECT_LARGE:
        return "large"
    if magnitude >= CC.EFFECT_MEDIUM:
        return "medium"
    if magnitude >= CC.EFFECT_SMALL:
        return "small"
    return "negligible"


def _interpret(result: SpearmanResult, alpha: float) -> str:
    if result.warning:
        return result.warning
    if result.p_value < alpha / 5:
        return "strong evidence of association"
    if result.p_value < alpha:
        return "evidence of association"
    return "no significant association"


def compute_cross_sensor_correlations(
    nights: list[AlignedNight], alpha: float = CC.SIGNIFICANCE_ALPHA
) -> list[CorrelationFinding]:
    """
    Run Spearman correlation for each clinical hypothesis pair.

    Args:
        nights: Aligned (optionally imputed) nights
        alpha: Significance level for the interpretation label

    Returns:
        One finding per entry in HYPOTHESIS_PAIRS
    """
    findings: list[CorrelationFinding] = []
    for x_field, y_field, hypothesis in HYPOTHESIS_PAIRS:
        result = spearman_correlation(
            aligned_values(nights, x_field), aligned_values(nights, y_field)
        )
        findings.append(
            CorrelationFinding(
                x_field=x_field,
                y_field=y_field,
                hypothesis=hypothesis,
                result=result,
                effect_size=_effect_label(result.correlation),
                interpretation=_interpret(result, alpha),
            )
        )
    significant = sum(1 for f in findings if f.result.p_value < alpha)
    logger.info(f"Cross-sensor correlations: {significant}/{len(findings)} significant")
    return findings
