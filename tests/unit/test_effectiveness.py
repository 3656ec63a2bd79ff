"""
Tests for data-quality assessment and therapy effectiveness scoring.
"""

import math

from datetime import timedelta

import pytest

from cpap_insight.analysis.sync import (
    analyze_therapy_effectiveness,
    assess_data_quality,
    compute_linear_trend,
)
from cpap_insight.analysis.sync.types import AlignedNight, AlignmentValidation
from cpap_insight.constants import MatchType
from tests.helpers.synthetic_data import (
    BASE_DATE,
    BASE_TIME,
    make_device_night,
    make_wearable_night,
)


def _night(
    index: int, ahi: float | None = 3.0, valid: bool = True, **wearable
) -> AlignedNight:
    day = BASE_DATE + timedelta(days=index)
    epap = wearable.pop("median_epap", None)
    return AlignedNight(
        sleep_date=day,
        device=make_device_night(
            BASE_TIME + timedelta(days=index), ahi=ahi, median_epap=epap
        ),
        wearable=make_wearable_night(day, **wearable),
        match_type=MatchType.EXACT,
        validation=AlignmentValidation(valid=valid, overlap_hours=7.0),
    )


class TestDataQuality:
    """Test completeness and validity rates."""

    def test_rates(self):
        nights = [
            _night(0, avg_sleep_hr=55.0),
            _night(1, avg_sleep_hr=56.0),
            _night(2, ahi=None, valid=False, avg_sleep_hr=57.0),
        ]

        result = assess_data_quality(nights)

        assert result.total_records == 3
        assert result.valid_records == 2
        assert result.excluded_records == 1
        assert result.missing_data_rate == pytest.approx(1 / 12)
        assert result.quality_score == pytest.approx(2 / 3)

    def test_missing_sleep_heart_rate_counted(self):
        result = assess_data_quality([_night(0), _night(1)])

        assert result.missing_data_rate == pytest.approx(0.25)
        assert result.quality_score == 1.0

    def test_empty(self):
        result = assess_data_quality([])

        assert result.total_records == 0
        assert math.isnan(result.quality_score)
        assert math.isnan(result.missing_data_rate)


class TestLinearTrend:
    """Test slope direction labels."""

    def test_increasing(self):
        result = compute_linear_trend([1.0, 2.0, 3.0, 4.0])

        assert result.slope == pytest.approx(1.0)
        assert result.direction == "increasing"
        assert result.correlation == pytest.approx(1.0)

    def test_decreasing(self):
        assert compute_linear_trend([4.0, 3.0, 2.0, 1.0]).direction == "decreasing"

    def test_small_slope_is_stable(self):
        result = compute_linear_trend([5.0, 5.05, 5.1, 5.15])

        assert result.direction == "stable"
        assert result.slope == pytest.approx(0.05)

    def test_missing_values_dropped(self):
        result = compute_linear_trend([1.0, None, 2.0, float("nan"), 3.0])

        assert result.slope == pytest.approx(1.0)

    def test_too_few_values(self):
        result = compute_linear_trend([1.0, None, 2.0])

        assert result.direction == "insufficient_data"
        assert math.isnan(result.slope)


class TestTherapyEffectiveness:
    """Test component metrics and the overall score."""

    def _nights(self):
        return [
            _night(
                i, ahi=float(i + 1), hrv_rmssd=60.0 - 2 * (i + 1), sleep_efficiency=90.0
            )
            for i in range(10)
        ]

    def test_ahi_control(self):
        result = analyze_therapy_effectiveness(self._nights())

        control = result.ahi_control
        assert control.median == pytest.approx(5.5)
        assert control.controlled_nights == 4
        assert control.control_rate == pytest.approx(0.4)
        assert control.severe_nights == 0
        assert control.trend.direction == "increasing"

    def test_physiological_response(self):
        result = analyze_therapy_effectiveness(self._nights())

        response = result.physiological_response
        assert response.ahi_hrv.correlation == pytest.approx(-1.0)
        assert response.significant
        assert response.hrv_trend.direction == "decreasing"

    def test_constant_efficiency_not_significant(self):
        result = analyze_therapy_effectiveness(self._nights())

        quality = result.sleep_quality
        assert not quality.significant
        assert quality.median_efficiency == 90.0
        assert quality.optimal_efficiency_nights == 10

    def test_overall_score(self):
        result = analyze_therapy_effectiveness(self._nights())

        assert result.oxygenation is None
        # 10 + 25 + 25 points, 3 of 4 components scored
        assert result.overall_score == pytest.approx(15.0)

    def test_device_only_nights(self):
        nights = [_night(i, ahi=float(i + 1)) for i in range(10)]

        result = analyze_therapy_effectiveness(nights)

        assert result.physiological_response is None
        assert result.sleep_quality is None
        assert result.overall_score == pytest.approx(2.5)

    def test_oxygenation(self):
        nights = [
            _night(i, ahi=1.0, median_epap=6.0 + i, min_spo2=s)
            for i, s in enumerate([88.0, 94.0, 95.0, 96.0, 97.0])
        ]

        result = analyze_therapy_effectiveness(nights)

        oxygenation = result.oxygenation
        assert oxygenation.median_min_spo2 == 95.0
        assert oxygenation.hypoxemic_nights == 1
        assert oxygenation.epap_spo2.correlation == pytest.approx(1.0)
        # AHI fully controlled and SpO2 score capped: (25 + 25) / 4
        assert result.overall_score == pytest.approx(12.5)

    def test_no_nights(self):
        result = analyze_therapy_effectiveness([])

        assert result.ahi_control is None
        assert result.overall_score == 0.0
