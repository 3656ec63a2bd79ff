"""Type definitions for cross-sensor alignment and correlation."""

import math

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from cpap_insight.constants import MatchType
from cpap_insight.models.nights import DeviceNight, WearableNight

__all__ = [
    "AlignmentValidation",
    "AlignedNight",
    "AlignmentStatistics",
    "AlignmentResult",
    "SpearmanResult",
    "LagCorrelation",
    "CrossCorrelationResult",
    "GrangerResult",
    "CorrelationFinding",
    "DataQuality",
    "LinearTrend",
    "AHIControl",
    "PhysiologicalResponse",
    "SleepQualityImpact",
    "OxygenationImpact",
    "TherapyEffectiveness",
]

# ============================================================================
# Alignment
# ============================================================================


class AlignmentValidation(BaseModel):
    """
    Checks applied to one device/wearable pairing.

    Attributes:
        valid: True when there are no errors
        overlap_hours: Hours both sensors cover
        time_difference_hours: |device usage - wearable sleep| (0 when the
            wearable reports no sleep duration)
        errors: Problems that exclude the night from analysis
        warnings: Problems worth surfacing that do not exclude the night
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    overlap_hours: float = 0.0
    time_difference_hours: float = math.nan
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class AlignedNight(BaseModel):
    """A device night paired with a wearable night."""

    model_config = ConfigDict(frozen=True)

    sleep_date: date
    device: DeviceNight
    wearable: WearableNight
    match_type: MatchType
    validation: AlignmentValidation
    imputed_fields: list[str] = Field(default_factory=list)


class AlignmentStatistics(BaseModel):
    """Summary counts for one alignment pass."""

    total_device_nights: int = Field(ge=0)
    total_wearable_nights: int = Field(ge=0)
    aligned_count: int = Field(ge=0)
    invalid_count: int = Field(ge=0)
    match_rate: float = Field(ge=0, le=1)
    match_types: dict[str, int] = Field(default_factory=dict)


class AlignmentResult(BaseModel):
    """
    Outcome of aligning device nights with wearable nights.

    Every input night appears in exactly one place: `aligned` (valid
    pairings), `invalid` (pairings that failed validation), or one of the
    unmatched lists.
    """

    aligned: list[AlignedNight] = Field(default_factory=list)
    invalid: list[AlignedNight] = Field(default_factory=list)
    unmatched_device: list[DeviceNight] = Field(default_factory=list)
    unmatched_wearable: list[WearableNight] = Field(default_factory=list)
    statistics: AlignmentStatistics


# ============================================================================
# Correlation & Causality
# ============================================================================


class SpearmanResult(BaseModel):
    """Spearman rank correlation with a two-sided p-value."""

    correlation: float = math.nan
    p_value: float = math.nan
    n: int = Field(default=0, ge=0)
    warning: str | None = None


class LagCorrelation(BaseModel):
    """Pearson correlation of x_t with y_t+lag."""

    lag: int
    correlation: float
    pairs: int = Field(ge=0)


class CrossCorrelationResult(BaseModel):
    """
    Lagged correlation scan.

    A positive peak_lag means x leads y by that many nights.
    """

    lags: list[LagCorrelation] = Field(default_factory=list)
    peak_lag: int | None = None
    peak_correlation: float = math.nan
    threshold: float = math.nan
    significant: bool = False
    n: int = Field(default=0, ge=0)
    warning: str | None = None


class GrangerResult(BaseModel):
    """F-test of whether past `cause` values improve prediction of `effect`.

    n counts regression rows: nights whose value and full lag window are observed.
    """

    f_statistic: float = math.nan
    p_value: float = math.nan
    lag: int | None = None
    n: int = Field(default=0, ge=0)
    significant: bool = False
    warning: str | None = None


class CorrelationFinding(BaseModel):
    """Spearman result for one clinical hypothesis pair."""

    x_field: str
    y_field: str
    hypothesis: str
    result: SpearmanResult
    effect_size: str
    interpretation: str


# ============================================================================
# Therapy Effectiveness
# ============================================================================


class DataQuality(BaseModel):
    """
    Completeness of a set of aligned nights.

    Attributes:
        total_records: Nights assessed
        valid_records: Nights whose alignment validation passed
        excluded_records: Nights that failed validation
        missing_data_rate: Share of core fields (AHI, usage, sleep HR, sleep
            duration) that are missing
        quality_score: valid_records / total_records
    """

    total_records: int = Field(ge=0)
    valid_records: int = Field(ge=0)
    excluded_records: int = Field(ge=0)
    missing_data_rate: float = math.nan
    quality_score: float = math.nan


class LinearTrend(BaseModel):
    """Least-squares slope per night over the observed values, in order."""

    slope: float = math.nan
    direction: Literal["increasing", "decreasing", "stable", "insufficient_data"]
    correlation: float = math.nan


class AHIControl(BaseModel):
    median: float
    controlled_nights: int = Field(ge=0)
    control_rate: float = Field(ge=0, le=1)
    severe_nights: int = Field(ge=0)
    trend: LinearTrend


class PhysiologicalResponse(BaseModel):
    ahi_hrv: SpearmanResult
    significant: bool
    median_hrv: float
    hrv_trend: LinearTrend


class SleepQualityImpact(BaseModel):
    usage_efficiency: SpearmanResult
    significant: bool
    median_efficiency: float
    optimal_efficiency_nights: int = Field(ge=0)


class OxygenationImpact(BaseModel):
    epap_spo2: SpearmanResult
    significant: bool
    median_min_spo2: float
    hypoxemic_nights: int = Field(ge=0)


class TherapyEffectiveness(BaseModel):
    """
    Therapy outcome components and their combined score.

    A component is None when its inputs are missing. Each scored component
    earns up to 25 points and overall_score is their mean scaled by the
    fraction of the four components scored, so it ranges over 0-25.
    """

    ahi_control: AHIControl | None = None
    physiological_response: PhysiologicalResponse | None = None
    sleep_quality: SleepQualityImpact | None = None
    oxygenation: OxygenationImpact | None = None
    overall_score: float = Field(default=0.0, ge=0, le=25)
