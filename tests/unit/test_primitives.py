"""
Tests for core statistics primitives.
"""

import math

import numpy as np
import pytest

from cpap_insight.analysis.statistics.primitives import (
    assign_ranks,
    normal_cdf,
    normal_quantile,
    partial_correlation,
    pearson,
    quantile,
    wilson_interval,
)


class TestQuantile:
    """Test type-7 quantile."""

    def test_linear_interpolation(self):
        assert quantile([1, 2, 3, 4], 0.5) == pytest.approx(2.5)
        assert quantile([1, 2, 3, 4], 0.25) == pytest.approx(1.75)

    def test_extremes(self):
        assert quantile([5, 1, 3], 0.0) == 1
        assert quantile([5, 1, 3], 1.0) == 5

    def test_empty_is_nan(self):
        assert math.isnan(quantile([], 0.5))

    def test_ignores_nan(self):
        assert quantile([1, math.nan, 3], 0.5) == pytest.approx(2.0)

    def test_out_of_range_probability(self):
        assert math.isnan(quantile([1, 2], 1.5))


class TestPearson:
    """Test Pearson correlation with pairwise deletion."""

    def test_perfect_correlation(self):
        assert pearson([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
        assert pearson([1, 2, 3], [3, 2, 1]) == pytest.approx(-1.0)

    def test_nan_pairs_dropped(self):
        with_nan = pearson([1, 2, math.nan, 4], [1, 2, 3, 4])
        without = pearson([1, 2, 4], [1, 2, 4])
        assert with_nan == pytest.approx(without)

    def test_fewer_than_two_pairs(self):
        assert math.isnan(pearson([1, math.nan], [1, 2]))
        assert math.isnan(pearson([], []))

    def test_zero_variance(self):
        assert math.isnan(pearson([1, 1, 1], [1, 2, 3]))

    def test_infinite_values_dropped(self):
        assert pearson([1, 2, 3, math.inf], [1, 2, 3, 0]) == pytest.approx(1.0)

    def test_length_mismatch_is_nan(self):
        assert math.isnan(pearson([1, 2, 3], [1, 2]))


class TestPartialCorrelation:
    """Test partial correlation via regression residuals."""

    def test_no_controls_equals_pearson(self):
        x = [1.0, 2.0, 4.0, 3.0, 5.0]
        y = [2.0, 1.0, 4.0, 5.0, 4.0]
        assert partial_correlation(x, y, []) == pytest.approx(pearson(x, y))

    def test_removes_common_driver(self):
        rng = np.random.default_rng(0)
        z = rng.normal(size=300)
        x = z + rng.normal(scale=0.1, size=300)
        y = z + rng.normal(scale=0.1, size=300)

        assert pearson(x, y) > 0.9
        assert abs(partial_correlation(x, y, [z])) < 0.2

    def test_too_few_rows(self):
        assert math.isnan(partial_correlation([1, 2], [2, 1], [[1, 2]]))


class TestNormalDistribution:
    """Test normal CDF and quantile consistency."""

    def test_known_values(self):
        assert normal_cdf(0.0) == pytest.approx(0.5)
        assert normal_cdf(1.96) == pytest.approx(0.975, abs=1e-4)
        assert normal_quantile(0.975) == pytest.approx(1.959964, abs=1e-4)

    @pytest.mark.parametrize("p", [0.005, 0.05, 0.25, 0.5, 0.75, 0.95, 0.995])
    def test_round_trip(self, p):
        assert normal_cdf(normal_quantile(p)) == pytest.approx(p, abs=1e-4)

    def test_boundaries(self):
        assert normal_quantile(0.0) == -math.inf
        assert normal_quantile(1.0) == math.inf
        assert math.isnan(normal_quantile(1.5))
        assert math.isnan(normal_cdf(math.nan))


class TestRanks:
    """Test average-rank assignment."""

    def test_ties_share_average_rank(self):
        np.testing.assert_allclose(assign_ranks([10, 20, 20, 30]), [1, 2.5, 2.5, 4])

    def test_nan_gets_nan_rank(self):
        ranks = assign_ranks([3.0, math.nan, 1.0])
        assert ranks[0] == 2
        assert math.isnan(ranks[1])
        assert ranks[2] == 1


class TestWilsonInterval:
    """Test Wilson score interval."""

    def test_contains_proportion(self):
        low, high = wilson_interval(0.3, 50)
        assert low < 0.3 < high

    def test_certain_proportion_upper_bound(self):
        low, high = wilson_interval(1.0, 4)
        assert high == pytest.approx(1.0)
        assert 0 < low < 1

    def test_no_trials(self):
        low, high = wilson_interval(0.5, 0)
        assert math.isnan(low) and math.isnan(high)
