"""
Trend and KPI statistics over nightly CPAP series.

Public entry points are re-exported here so callers can write
``from cpap_insight.analysis.statistics import mann_whitney_u_test``.
"""

from cpap_insight.analysis.statistics.autocorrelation import (
    compute_autocorrelation,
    compute_partial_autocorrelation,
    recommended_max_lag,
)
from cpap_insight.analysis.statistics.decomposition import (
    detect_change_points,
    stl_decompose,
)
from cpap_insight.analysis.statistics.hypothesis import mann_whitney_u_test
from cpap_insight.analysis.statistics.primitives import (
    assign_ranks,
    normal_cdf,
    normal_quantile,
    partial_correlation,
    pearson,
    quantile,
)
from cpap_insight.analysis.statistics.smoothing import loess_smooth, running_quantile_xy
from cpap_insight.analysis.statistics.summaries import iqr_outliers, summarize_values
from cpap_insight.analysis.statistics.survival import km_survival
from cpap_insight.analysis.statistics.therapy import (
    compute_ahi_trends,
    compute_apnea_event_stats,
    compute_epap_trends,
)
from cpap_insight.analysis.statistics.trends import (
    compute_adherence_streaks,
    compute_rolling_windows,
    detect_usage_breakpoints,
    rolling_means,
)

__all__ = [
    "assign_ranks",
    "compute_adherence_streaks",
    "compute_ahi_trends",
    "compute_apnea_event_stats",
    "compute_autocorrelation",
    "compute_epap_trends",
    "compute_partial_autocorrelation",
    "compute_rolling_windows",
    "detect_change_points",
    "detect_usage_breakpoints",
    "iqr_outliers",
    "km_survival",
    "loess_smooth",
    "mann_whitney_u_test",
    "normal_cdf",
    "normal_quantile",
    "partial_correlation",
    "pearson",
    "quantile",
    "recommended_max_lag",
    "rolling_means",
    "running_quantile_xy",
    "stl_decompose",
    "summarize_values",
]
