"""
Date-aware rolling usage statistics, breakpoints, and adherence streaks.

Windows are defined in calendar days, not sample positions, so a week with
two missing nights is still a one-week window with five samples in it.
"""

import logging
import math

from collections.abc import Sequence
from datetime import date

import numpy as np

from cpap_insight.analysis.statistics.primitives import ArrayLike, as_float_array
from cpap_insight.analysis.statistics.types import (
    AdherenceStreaks,
    RollingWindowStats,
    UsageBreakpoint,
)
from cpap_insight.constants import COMPLIANCE_MIN_HOURS
from cpap_insight.constants import StatisticsConstants as SC
from cpap_insight.models.series import Series

logger = logging.getLogger(__name__)

__all__ = [
    "compute_rolling_windows",
    "rolling_means",
    "detect_usage_breakpoints",
    "compute_adherence_streaks",
]


def _window_stats(
    end: date, window_days: int, vals: np.ndarray, threshold: float, z: float
) -> RollingWindowStats:
    """Mean/median with confidence intervals over one window's finite values."""
    n = vals.size
    if n == 0:
        return RollingWindowStats(date=end, window_days=window_days, n=0)

    mean = float(vals.mean())
    if n > 1:
        half = z * float(vals.std(ddof=1)) / math.sqrt(n)
        mean_lo, mean_hi = mean - half, mean + half
    else:
        mean_lo = mean_hi = math.nan

    ordered = np.sort(vals)
    median = float(np.median(ordered))
    # Binomial order-statistic interval for the median (1-based ranks)
    lo_rank = int(math.floor(n / 2 - z * math.sqrt(n) / 2))
    hi_rank = int(math.ceil(1 + n / 2 + z * math.sqrt(n) / 2))
    lo_rank = min(max(lo_rank, 1), n)
    hi_rank = min(max(hi_rank, 1), n)

    return RollingWindowStats(
        date=end,
        window_days=window_days,
        n=n,
        mean=mean,
        mean_ci_low=mean_lo,
        mean_ci_high=mean_hi,
        median=median,
        median_ci_low=float(ordered[lo_rank - 1]),
        median_ci_high=float(ordered[hi_rank - 1]),
        compliance_pct=100.0 * float(np.mean(vals >= threshold)),
    )


def compute_rolling_windows(
    series: Series,
    windows: Sequence[int] = SC.ROLLING_WINDOWS,
    compliance_threshold: float = COMPLIANCE_MIN_HOURS,
    z: float = SC.CONFIDENCE_Z,
) -> dict[int, list[RollingWindowStats]]:
    """
    Trailing calendar-window statistics for every sample date.

    The window for date d covers the calendar days (d - window + 1) .. d.
    Missing nights simply reduce n.

    Args:
        series: Date-ordered nightly values (e.g., usage hours)
        windows: Window lengths in days
        compliance_threshold: Value counted as a compliant night
        z: Normal critical value for the mean interval

    Returns:
        Mapping of window length to one RollingWindowStats per sample

    Raises:
        ValueError: If a window length is below 1
    """
    values = series.values()
    dates = series.dates()
    ordinals = np.array([d.toordinal() for d in dates], dtype=int)

    result: dict[int, list[RollingWindowStats]] = {}
    for window in windows:
        if window < 1:
            raise ValueError(f"Rolling window must be at least 1 day, got {window}")
        stats_list: list[RollingWindowStats] = []
        start = 0
        for i, day in enumerate(ordinals):
            while day - ordinals[start] >= window:
                start += 1
            vals = values[start : i + 1]
            vals = vals[np.isfinite(vals)]
            stats_list.append(
                _window_stats(dates[i], window, vals, compliance_threshold, z)
            )
        result[window] = stats_list

    logger.debug(f"Rolling windows {list(windows)} computed over {len(dates)} nights")
    return result


def rolling_means(stats_list: Sequence[RollingWindowStats]) -> np.ndarray:
    """Extract the mean from each window entry as a float array."""
    return np.array([s.mean for s in stats_list], dtype=float)


def detect_usage_breakpoints(
    short_means: ArrayLike,
    long_means: ArrayLike,
    dates: Sequence[date],
    min_delta: float = SC.BREAKPOINT_MIN_DELTA,
) -> list[UsageBreakpoint]:
    """
    Dates where the short rolling mean crosses the long rolling mean.

    A crossing only counts when the short-minus-long difference after the
    crossing is at least min_delta in magnitude. Positions where either mean
    is NaN are skipped.

    Args:
        short_means: Short-window means (e.g., 7 days)
        long_means: Long-window means (e.g., 30 days)
        dates: Date of each mean
        min_delta: Minimum post-crossing separation

    Returns:
        Breakpoints in date order
    """
    short = as_float_array(short_means)
    long_ = as_float_array(long_means)
    n = min(short.size, long_.size, len(dates))
    diff = short[:n] - long_[:n]

    points: list[UsageBreakpoint] = []
    for i in range(1, n):
        prev, curr = diff[i - 1], diff[i]
        if not (math.isfinite(prev) and math.isfinite(curr)):
            continue
        crossed = (prev <= 0 < curr) or (prev >= 0 > curr)
        if crossed and abs(curr) >= min_delta:
            points.append(
                UsageBreakpoint(
                    date=dates[i],
                    index=i,
                    short_mean=float(short[i]),
                    long_mean=float(long_[i]),
                    delta=float(curr),
                    direction="up" if curr > 0 else "down",
                )
            )
    return points


def compute_adherence_streaks(
    series: Series, threshold: float = COMPLIANCE_MIN_HOURS
) -> AdherenceStreaks:
    """
    Longest runs of consecutive nights at/above and below a usage threshold.

    A missing calendar day or a NaN value breaks both kinds of run.

    Args:
        series: Nightly usage hours
        threshold: Hours counted as a compliant night

    Returns:
        AdherenceStreaks including the run still open on the last night
    """
    longest_ok = longest_bad = 0
    current_ok = current_bad = 0
    prev_day: date | None = None

    for sample in series.samples:
        if prev_day is not None and (sample.date - prev_day).days > 1:
            current_ok = current_bad = 0
        prev_day = sample.date

        if not math.isfinite(sample.value):
            current_ok = current_bad = 0
            continue
        if sample.value >= threshold:
            current_ok += 1
            current_bad = 0
        else:
            current_bad += 1
            current_ok = 0
        longest_ok = max(longest_ok, current_ok)
        longest_bad = max(longest_bad, current_bad)

    return AdherenceStreaks(
        threshold=threshold,
        longest_compliant=longest_ok,
        longest_noncompliant=longest_bad,
        current_compliant=current_ok,
    )
