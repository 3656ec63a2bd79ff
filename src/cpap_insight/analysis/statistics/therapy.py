"""
Therapy KPI summaries: apnea event durations, AHI and EPAP trends.

Early versus recent behaviour is summarized by the mean of the first and
last TREND_WINDOW_NIGHTS nights in session order.
"""

import logging
import math

from collections import Counter
from collections.abc import Sequence

import numpy as np

from cpap_insight.analysis.statistics.primitives import pearson, quantile
from cpap_insight.analysis.statistics.summaries import summarize_values
from cpap_insight.analysis.statistics.types import (
    AHITrends,
    ApneaEventStats,
    EPAPTrends,
)
from cpap_insight.constants import TherapyConstants as TC
from cpap_insight.models.events import RespiratoryEvent
from cpap_insight.models.nights import DeviceNight

logger = logging.getLogger(__name__)

__all__ = ["compute_apnea_event_stats", "compute_ahi_trends", "compute_epap_trends"]


def _finite(values: Sequence[float | None]) -> list[float]:
    return [float(v) for v in values if v is not None and math.isfinite(v)]


def _mean(values: list[float]) -> float:
    return float(np.mean(values)) if values else math.nan


def _session_order(nights: Sequence[DeviceNight]) -> list[DeviceNight]:
    """Nights with a session start, earliest first."""
    dated = [n for n in nights if n.session_start is not None]
    return sorted(dated, key=lambda n: n.session_start)


def _window_means(
    nights: Sequence[DeviceNight], field: str, window: int
) -> tuple[float, float]:
    ordered = _session_order(nights)
    first = _finite([getattr(n, field) for n in ordered[:window]])
    last = _finite([getattr(n, field) for n in ordered[-window:]])
    return _mean(first), _mean(last)


def compute_apnea_event_stats(events: Sequence[RespiratoryEvent]) -> ApneaEventStats:
    """
    Summarize apnea event durations and how many apneas each night holds.

    Only apnea kinds count; hypopneas and flow limitation are ignored.
    Outliers lie beyond the Tukey fences (1.5 IQR past the quartiles).
    Nights are keyed by the calendar date of the event timestamp.

    Args:
        events: Respiratory events in any order

    Returns:
        ApneaEventStats, empty with NaN statistics when there are no apneas
    """
    apneas = [e for e in events if e.is_apnea]
    durations = [e.duration_sec for e in apneas]
    if not durations:
        return ApneaEventStats()

    p25 = quantile(durations, 0.25)
    p75 = quantile(durations, 0.75)
    iqr = p75 - p25
    upper_fence = p75 + TC.OUTLIER_IQR_FACTOR * iqr
    over_30, over_60 = TC.LONG_EVENT_SEC

    nightly = Counter(e.timestamp.date() for e in apneas)
    night_dates = sorted(nightly)
    per_night = [nightly[d] for d in night_dates]
    n25 = quantile(per_night, 0.25)
    n75 = quantile(per_night, 0.75)
    n_iqr = n75 - n25

    logger.debug(f"Apnea stats: {len(durations)} events over {len(night_dates)} nights")
    return ApneaEventStats(
        durations=durations,
        total_events=len(durations),
        p25_duration=p25,
        median_duration=quantile(durations, 0.5),
        p75_duration=p75,
        p95_duration=quantile(durations, 0.95),
        iqr_duration=iqr,
        max_duration=max(durations),
        count_over_30=sum(1 for d in durations if d > over_30),
        count_over_60=sum(1 for d in durations if d > over_60),
        count_outlier_events=sum(1 for d in durations if d > upper_fence),
        night_dates=night_dates,
        events_per_night=per_night,
        p25_night=n25,
        median_night=quantile(per_night, 0.5),
        p75_night=n75,
        iqr_night=n_iqr,
        min_night=float(min(per_night)),
        max_night=float(max(per_night)),
        outlier_nights_high=sum(
            1 for c in per_night if c > n75 + TC.OUTLIER_IQR_FACTOR * n_iqr
        ),
        outlier_nights_low=sum(
            1 for c in per_night if c < n25 - TC.OUTLIER_IQR_FACTOR * n_iqr
        ),
    )


def compute_ahi_trends(
    nights: Sequence[DeviceNight], window: int = TC.TREND_WINDOW_NIGHTS
) -> AHITrends:
    """
    AHI distribution, elevated-night count, and first/last window means.

    Args:
        nights: Device nights (missing AHI ignored)
        window: Nights in each of the first and last windows

    Returns:
        AHITrends with NaN statistics when no night reports an AHI
    """
    values = _finite([n.ahi for n in nights])
    first, last = _window_means(nights, "ahi", window)
    return AHITrends(
        values=values,
        summary=summarize_values(values),
        nights_over_5=sum(1 for v in values if v > TC.AHI_ELEVATED),
        first_window_mean=first,
        last_window_mean=last,
        window_nights=window,
    )


def compute_epap_trends(
    nights: Sequence[DeviceNight],
    window: int = TC.TREND_WINDOW_NIGHTS,
    epap_split: float = TC.EPAP_SPLIT_CMH2O,
) -> EPAPTrends:
    """
    Median EPAP distribution and how AHI differs across pressure levels.

    Nights are split at `epap_split` cmH2O into low (below) and high (at or
    above) groups, and the mean AHI of each group is reported alongside the
    EPAP/AHI Pearson correlation.

    Args:
        nights: Device nights (missing EPAP or AHI ignored per statistic)
        window: Nights in each of the first and last windows
        epap_split: Pressure separating the low and high groups

    Returns:
        EPAPTrends with NaN statistics where inputs are missing
    """
    values = _finite([n.median_epap for n in nights])
    first, last = _window_means(nights, "median_epap", window)

    pairs = [
        (n.median_epap, n.ahi)
        for n in nights
        if n.median_epap is not None
        and n.ahi is not None
        and math.isfinite(n.median_epap)
        and math.isfinite(n.ahi)
    ]
    low = [a for p, a in pairs if p < epap_split]
    high = [a for p, a in pairs if p >= epap_split]
    corr = pearson([p for p, _ in pairs], [a for _, a in pairs])

    return EPAPTrends(
        values=values,
        summary=summarize_values(values),
        first_window_mean=first,
        last_window_mean=last,
        window_nights=window,
        corr_epap_ahi=corr,
        epap_split=epap_split,
        low_ahis=low,
        high_ahis=high,
        mean_ahi_low=_mean(low),
        mean_ahi_high=_mean(high),
    )
