"""
Result models for the trend statistics.

All results are plain pydantic models so they serialize with model_dump()
and can be handed to a worker thread or written out verbatim. NaN marks a
value that could not be computed.
"""

import math

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

__all__ = [
    "AutocorrelationValue",
    "AutocorrelationResult",
    "PartialAutocorrelationValue",
    "PartialAutocorrelationMeta",
    "PartialAutocorrelationResult",
    "Decomposition",
    "ChangePoint",
    "RollingWindowStats",
    "UsageBreakpoint",
    "AdherenceStreaks",
    "SurvivalCurve",
    "MannWhitneyResult",
    "ValueSummary",
    "ApneaEventStats",
    "AHITrends",
    "EPAPTrends",
]

# ============================================================================
# Autocorrelation
# ============================================================================


class AutocorrelationValue(BaseModel):
    """ACF at a single lag."""

    lag: int = Field(ge=0)
    autocorrelation: float
    pairs: int = Field(ge=0, description="Finite (x_t, x_t+lag) pairs used")


class AutocorrelationResult(BaseModel):
    """
    Autocorrelation function over lags 0..max_lag.

    Attributes:
        values: One entry per lag, starting at lag 0
        sample_size: Number of finite samples in the series
        confidence: White-noise significance band (z / sqrt(n)), NaN if n == 0
    """

    values: list[AutocorrelationValue] = Field(default_factory=list)
    sample_size: int = Field(ge=0)
    confidence: float = math.nan


class PartialAutocorrelationValue(BaseModel):
    """PACF at a single lag."""

    lag: int = Field(ge=1)
    partial_autocorrelation: float
    pairs: int = Field(ge=0, description="Complete lag rows used in the regression")


class PartialAutocorrelationMeta(BaseModel):
    """Lag stability diagnostics attached to a PACF result."""

    recommended_max_lag: int = Field(ge=0)
    unstable_lags: list[int] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PartialAutocorrelationResult(BaseModel):
    """Partial autocorrelation function over lags 1..max_lag."""

    values: list[PartialAutocorrelationValue] = Field(default_factory=list)
    sample_size: int = Field(ge=0)
    confidence: float = math.nan
    meta: PartialAutocorrelationMeta


# ============================================================================
# Decomposition & Change Points
# ============================================================================


class Decomposition(BaseModel):
    """
    Additive trend/seasonal/residual split.

    trend[i] + seasonal[i] + residual[i] reproduces the input for every i.
    """

    trend: list[float]
    seasonal: list[float]
    residual: list[float]
    season_length: int = Field(ge=1)


class ChangePoint(BaseModel):
    """Start of a new mean segment in a penalized segmentation."""

    date: date
    index: int = Field(ge=0, description="Position in the input series")
    mean_before: float
    mean_after: float

    @property
    def delta(self) -> float:
        return self.mean_after - self.mean_before


class RollingWindowStats(BaseModel):
    """
    Trailing calendar-window statistics ending at `date`.

    Attributes:
        date: Last day of the window
        window_days: Calendar span of the window
        n: Finite samples inside the window
        mean: Window mean
        mean_ci_low: Lower normal CI on the mean
        mean_ci_high: Upper normal CI on the mean
        median: Window median
        median_ci_low: Lower order-statistic CI on the median
        median_ci_high: Upper order-statistic CI on the median
        compliance_pct: Share of nights at/above the compliance threshold (%)
    """

    date: date
    window_days: int = Field(ge=1)
    n: int = Field(ge=0)
    mean: float = math.nan
    mean_ci_low: float = math.nan
    mean_ci_high: float = math.nan
    median: float = math.nan
    median_ci_low: float = math.nan
    median_ci_high: float = math.nan
    compliance_pct: float = math.nan


class UsageBreakpoint(BaseModel):
    """Crossing between the short and long rolling means."""

    date: date
    index: int = Field(ge=0)
    short_mean: float
    long_mean: float
    delta: float
    direction: Literal["up", "down"]


class AdherenceStreaks(BaseModel):
    """Longest runs of consecutive calendar nights above/below threshold."""

    threshold: float
    longest_compliant: int = Field(ge=0)
    longest_noncompliant: int = Field(ge=0)
    current_compliant: int = Field(ge=0)


# ============================================================================
# Survival & Hypothesis Tests
# ============================================================================


class SurvivalCurve(BaseModel):
    """
    Kaplan-Meier estimate with Greenwood log-log confidence bounds.

    Bounds are NaN wherever the survival estimate is exactly 0 or 1.
    """

    times: list[float] = Field(default_factory=list)
    survival: list[float] = Field(default_factory=list)
    lower: list[float] = Field(default_factory=list)
    upper: list[float] = Field(default_factory=list)
    at_risk: list[int] = Field(default_factory=list)
    events: list[int] = Field(default_factory=list)

    def median_survival_time(self) -> float:
        """First time at which survival drops to 0.5 or below (NaN if never)."""
        for t, s in zip(self.times, self.survival):
            if s <= 0.5:
                return t
        return math.nan


class MannWhitneyResult(BaseModel):
    """
    Two-sided Mann-Whitney U test with rank-biserial effect size.

    Attributes:
        u: min(U1, U2)
        u1: U statistic of sample A
        u2: U statistic of sample B (pairs where B exceeds A, ties count 1/2)
        z: Normal-approximation z score (NaN in the exact regime)
        p: Two-sided p-value
        method: Regime used, None when a sample was empty
        effect: Rank-biserial correlation, positive when B tends larger
        effect_ci_low: Lower confidence bound on the effect
        effect_ci_high: Upper confidence bound on the effect
        n_a: Finite values in A
        n_b: Finite values in B
        warning: Set when the test could not run
    """

    u: float = math.nan
    u1: float = math.nan
    u2: float = math.nan
    z: float = math.nan
    p: float = math.nan
    method: Literal["exact", "normal"] | None = None
    effect: float = math.nan
    effect_ci_low: float = math.nan
    effect_ci_high: float = math.nan
    n_a: int = 0
    n_b: int = 0
    warning: str | None = None


class ValueSummary(BaseModel):
    """Distribution summary over the finite values of a sample."""

    count: int = Field(ge=0)
    mean: float = math.nan
    median: float = math.nan
    min: float = math.nan
    max: float = math.nan
    p05: float = math.nan
    p25: float = math.nan
    p75: float = math.nan
    p95: float = math.nan

    @property
    def iqr(self) -> float:
        return self.p75 - self.p25


# ============================================================================
# Therapy KPIs
# ============================================================================


class ApneaEventStats(BaseModel):
    """
    Duration distribution of apnea events and their per-night counts.

    Attributes:
        durations: Apnea durations (s) in input order
        total_events: Number of apnea events
        count_over_30: Events longer than 30 s
        count_over_60: Events longer than 60 s
        count_outlier_events: Events above the upper Tukey fence
        night_dates: Calendar dates with at least one apnea, ascending
        events_per_night: Apnea count for each entry of night_dates
        outlier_nights_high: Nights above the upper Tukey fence
        outlier_nights_low: Nights below the lower Tukey fence
    """

    durations: list[float] = Field(default_factory=list)
    total_events: int = Field(default=0, ge=0)
    p25_duration: float = math.nan
    median_duration: float = math.nan
    p75_duration: float = math.nan
    p95_duration: float = math.nan
    iqr_duration: float = math.nan
    max_duration: float = math.nan
    count_over_30: int = Field(default=0, ge=0)
    count_over_60: int = Field(default=0, ge=0)
    count_outlier_events: int = Field(default=0, ge=0)
    night_dates: list[date] = Field(default_factory=list)
    events_per_night: list[int] = Field(default_factory=list)
    p25_night: float = math.nan
    median_night: float = math.nan
    p75_night: float = math.nan
    iqr_night: float = math.nan
    min_night: float = math.nan
    max_night: float = math.nan
    outlier_nights_high: int = Field(default=0, ge=0)
    outlier_nights_low: int = Field(default=0, ge=0)


class AHITrends(BaseModel):
    """AHI distribution plus early versus recent averages."""

    values: list[float] = Field(default_factory=list)
    summary: ValueSummary
    nights_over_5: int = Field(default=0, ge=0)
    first_window_mean: float = math.nan
    last_window_mean: float = math.nan
    window_nights: int = Field(ge=1)


class EPAPTrends(BaseModel):
    """
    Median EPAP distribution and its relation to AHI.

    Attributes:
        corr_epap_ahi: Pearson correlation over nights with both values
        low_ahis: AHI of nights below the EPAP split
        high_ahis: AHI of nights at or above the EPAP split
    """

    values: list[float] = Field(default_factory=list)
    summary: ValueSummary
    first_window_mean: float = math.nan
    last_window_mean: float = math.nan
    window_nights: int = Field(ge=1)
    corr_epap_ahi: float = math.nan
    epap_split: float
    low_ahis: list[float] = Field(default_factory=list)
    high_ahis: list[float] = Field(default_factory=list)
    mean_ahi_low: float = math.nan
    mean_ahi_high: float = math.nan
