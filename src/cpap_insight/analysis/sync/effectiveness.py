"""
Data-quality and therapy-effectiveness summaries over aligned nights.

Pairwise statistics only use nights where both values are present, so a
missing wearable reading never shifts the device series against it.
"""

import logging
import math

import numpy as np

from scipy import stats

from cpap_insight.analysis.statistics.primitives import (
    ArrayLike,
    as_float_array,
    quantile,
)
from cpap_insight.analysis.sync.correlation import aligned_values, spearman_correlation
from cpap_insight.analysis.sync.types import (
    AHIControl,
    AlignedNight,
    DataQuality,
    LinearTrend,
    OxygenationImpact,
    PhysiologicalResponse,
    SleepQualityImpact,
    TherapyEffectiveness,
)
from cpap_insight.constants import CorrelationConstants as CC
from cpap_insight.constants import TherapyConstants as TC

logger = logging.getLogger(__name__)

__all__ = [
    "assess_data_quality",
    "compute_linear_trend",
    "analyze_therapy_effectiveness",
]

# Fields a night needs for the core analyses
QUALITY_FIELDS = (
    "device.ahi",
    "device.usage_hours",
    "wearable.avg_sleep_hr",
    "wearable.minutes_asleep",
)


def assess_data_quality(nights: list[AlignedNight]) -> DataQuality:
    """
    Share of valid nights and of missing core fields.

    Args:
        nights: Aligned nights, including ones that failed validation

    Returns:
        DataQuality; rates are NaN for an empty input
    """
    total = len(nights)
    valid = sum(1 for n in nights if n.validation.valid)
    if total == 0:
        return DataQuality(total_records=0, valid_records=0, excluded_records=0)

    missing = sum(
        int(np.count_nonzero(~np.isfinite(aligned_values(nights, field))))
        for field in QUALITY_FIELDS
    )
    quality = DataQuality(
        total_records=total,
        valid_records=valid,
        excluded_records=total - valid,
        missing_data_rate=missing / (total * len(QUALITY_FIELDS)),
        quality_score=valid / total,
    )
    logger.info(
        f"Data quality: {valid}/{total} valid, "
        f"{quality.missing_data_rate:.0%} core fields missing"
    )
    return quality


def compute_linear_trend(values: ArrayLike) -> LinearTrend:
    """
    Least-squares slope of the observed values against their position.

    Missing values are dropped first, so the slope is per observed night.
    Slopes within +/-0.1 per night are reported as stable.

    Returns:
        LinearTrend, "insufficient_data" with fewer than 3 values
    """
    arr = as_float_array(values)
    arr = arr[np.isfinite(arr)]
    if arr.size < TC.LINEAR_TREND_MIN_SAMPLES:
        return LinearTrend(direction="insufficient_data")

    fit = stats.linregress(np.arange(arr.size, dtype=float), arr)
    slope = float(fit.slope)
    if slope > TC.LINEAR_TREND_STABLE_SLOPE:
        direction = "increasing"
    elif slope < -TC.LINEAR_TREND_STABLE_SLOPE:
        direction = "decreasing"
    else:
        direction = "stable"
    return LinearTrend(slope=slope, direction=direction, correlation=float(fit.rvalue))


def _finite(values: np.ndarray) -> np.ndarray:
    return values[np.isfinite(values)]


def _significant(p_value: float, alpha: float) -> bool:
    return math.isfinite(p_value) and p_value < alpha


def _therapy_score(result: TherapyEffectiveness) -> float:
    """Mean component points, weighted by how many components were scored."""
    points = TC.SCORE_COMPONENT_POINTS
    earned: list[float] = []
    if result.ahi_control:
        earned.append(result.ahi_control.control_rate * points)
    if result.physiological_response and result.physiological_response.significant:
        earned.append(abs(result.physiological_response.ahi_hrv.correlation) * points)
    if result.sleep_quality:
        ratio = result.sleep_quality.median_efficiency / TC.OPTIMAL_SLEEP_EFFICIENCY
        earned.append(min(ratio * points, points))
    if result.oxygenation:
        above_floor = result.oxygenation.median_min_spo2 - TC.SPO2_SCORE_FLOOR
        earned.append(max(min(above_floor / TC.SPO2_SCORE_RANGE * points, points), 0.0))

    if not earned:
        return 0.0
    return (sum(earned) / len(earned)) * (len(earned) / TC.SCORE_COMPONENTS)


def analyze_therapy_effectiveness(
    nights: list[AlignedNight], alpha: float = CC.SIGNIFICANCE_ALPHA
) -> TherapyEffectiveness:
    """
    Summarize how well therapy controls events and what the wearable shows.

    Components:
        ahi_control: Median AHI, nights below 5 and above 30, AHI trend
        physiological_response: AHI vs HRV (Spearman), HRV trend
        sleep_quality: Usage vs sleep efficiency, nights above 85%
        oxygenation: EPAP vs minimum SpO2, nights below 90%

    Args:
        nights: Aligned (optionally imputed) nights in date order
        alpha: Significance level for the correlation components

    Returns:
        TherapyEffectiveness with the score over the components present
    """
    ahi = aligned_values(nights, "device.ahi")
    usage = aligned_values(nights, "device.usage_hours")
    epap = aligned_values(nights, "device.median_epap")
    hrv = aligned_values(nights, "wearable.hrv_rmssd")
    efficiency = aligned_values(nights, "wearable.sleep_efficiency")
    min_spo2 = aligned_values(nights, "wearable.min_spo2")

    ahi_control = physiological = sleep_quality = oxygenation = None
    ahi_obs = _finite(ahi)
    if ahi_obs.size:
        controlled = int(np.count_nonzero(ahi_obs < TC.AHI_ELEVATED))
        ahi_control = AHIControl(
            median=quantile(ahi_obs, 0.5),
            controlled_nights=controlled,
            control_rate=controlled / ahi_obs.size,
            severe_nights=int(np.count_nonzero(ahi_obs > TC.AHI_SEVERE)),
            trend=compute_linear_trend(ahi_obs),
        )

    hrv_obs = _finite(hrv)
    if hrv_obs.size and ahi_obs.size:
        corr = spearman_correlation(ahi, hrv)
        physiological = PhysiologicalResponse(
            ahi_hrv=corr,
            significant=_significant(corr.p_value, alpha),
            median_hrv=quantile(hrv_obs, 0.5),
            hrv_trend=compute_linear_trend(hrv_obs),
        )

    eff_obs = _finite(efficiency)
    if eff_obs.size and _finite(usage).size:
        corr = spearman_correlation(usage, efficiency)
        sleep_quality = SleepQualityImpact(
            usage_efficiency=corr,
            significant=_significant(corr.p_value, alpha),
            median_efficiency=quantile(eff_obs, 0.5),
            optimal_efficiency_nights=int(
                np.count_nonzero(eff_obs > TC.OPTIMAL_SLEEP_EFFICIENCY)
            ),
        )

    spo2_obs = _finite(min_spo2)
    if spo2_obs.size and _finite(epap).size:
        corr = spearman_correlation(epap, min_spo2)
        oxygenation = OxygenationImpact(
            epap_spo2=corr,
            significant=_significant(corr.p_value, alpha),
            median_min_spo2=quantile(spo2_obs, 0.5),
            hypoxemic_nights=int(np.count_nonzero(spo2_obs < TC.HYPOXEMIA_SPO2)),
        )

    result = TherapyEffectiveness(
        ahi_control=ahi_control,
        physiological_response=physiological,
        sleep_quality=sleep_quality,
        oxygenation=oxygenation,
    )
    result = result.model_copy(update={"overall_score": _therapy_score(result)})
    logger.info(f"Therapy effectiveness score: {result.overall_score:.1f}")
    return result
