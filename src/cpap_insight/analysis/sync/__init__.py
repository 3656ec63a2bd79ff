"""Cross-sensor alignment, imputation, and correlation."""

from cpap_insight.analysis.sync.alignment import (
    align_nights,
    calculate_sleep_date,
    validate_alignment,
)
from cpap_insight.analysis.sync.correlation import (
    HYPOTHESIS_PAIRS,
    aligned_values,
    compute_cross_sensor_correlations,
    cross_correlation,
    granger_causality_test,
    spearman_correlation,
)
from cpap_insight.analysis.sync.effectiveness import (
    analyze_therapy_effectiveness,
    assess_data_quality,
    compute_linear_trend,
)
from cpap_insight.analysis.sync.imputation import impute_missing_values

__all__ = [
    "HYPOTHESIS_PAIRS",
    "align_nights",
    "aligned_values",
    "analyze_therapy_effectiveness",
    "assess_data_quality",
    "calculate_sleep_date",
    "compute_cross_sensor_correlations",
    "compute_linear_trend",
    "cross_correlation",
    "granger_causality_test",
    "impute_missing_values",
    "spearman_correlation",
    "validate_alignment",
]
