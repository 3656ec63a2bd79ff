"""
Tests for the Kaplan-Meier estimator.
"""

import math

import numpy as np
import pytest

from cpap_insight.analysis.statistics.survival import km_survival


class TestKaplanMeier:
    """Test product-limit survival and Greenwood bounds."""

    def test_step_values(self):
        curve = km_survival([1, 2, 2, 3])

        assert curve.times == [1.0, 2.0, 3.0]
        assert curve.survival == pytest.approx([0.75, 0.25, 0.0])
        assert curve.at_risk == [4, 3, 1]
        assert curve.events == [1, 2, 1]

    def test_log_log_bounds(self):
        curve = km_survival([1, 2, 2, 3])

        assert curve.lower[0] == pytest.approx(0.1279, abs=1e-3)
        assert curve.upper[0] == pytest.approx(0.9606, abs=1e-3)
        assert curve.lower[0] < curve.survival[0] < curve.upper[0]

    def test_bounds_nan_at_zero_survival(self):
        curve = km_survival([1, 2, 2, 3])

        assert curve.survival[-1] == 0.0
        assert math.isnan(curve.lower[-1])
        assert math.isnan(curve.upper[-1])

    def test_single_observation(self):
        curve = km_survival([42.0])

        assert curve.survival == [0.0]
        assert math.isnan(curve.lower[0])

    def test_monotone_non_increasing(self):
        rng = np.random.default_rng(11)
        curve = km_survival(rng.exponential(20.0, size=200))

        assert curve.survival[0] <= 1.0
        assert all(b <= a for a, b in zip(curve.survival, curve.survival[1:]))
        assert len(curve.lower) == len(curve.upper) == len(curve.times)

    def test_invalid_durations_dropped(self):
        curve = km_survival([math.nan, -5, 10, math.inf, 20])
        assert curve.times == [10.0, 20.0]

    def test_empty_input(self):
        curve = km_survival([])
        assert curve.times == []
        assert math.isnan(curve.median_survival_time())

    def test_median_survival_time(self):
        curve = km_survival([10, 20, 30, 40])
        assert curve.median_survival_time() == 20.0
