"""
Mann-Whitney U test with rank-biserial effect size.

Small samples get an exact p-value from the full permutation distribution
of rank sums (ties included); larger samples use the tie-corrected normal
approximation with continuity correction.
"""

import logging
import math

from collections import defaultdict

import numpy as np

from cpap_insight.analysis.statistics.primitives import (
    ArrayLike,
    as_float_array,
    assign_ranks,
    normal_cdf,
    wilson_interval,
)
from cpap_insight.analysis.statistics.types import MannWhitneyResult
from cpap_insight.constants import HypothesisTestConstants as HTC
from cpap_insight.constants import StatisticsConstants as SC

logger = logging.getLogger(__name__)

__all__ = ["mann_whitney_u_test", "exact_rank_sum_p_value"]


def exact_rank_sum_p_value(ranks: np.ndarray, n1: int, observed_sum: float) -> float:
    """
    Two-sided exact p-value for the rank sum of a size-n1 subset.

    Counts every way of choosing n1 of the pooled ranks whose sum is at least
    as far from the null mean as the observed sum. Average ranks are always
    multiples of 1/2, so sums are tracked as integers of doubled ranks.

    Args:
        ranks: Pooled average ranks of both samples
        n1: Size of the first sample
        observed_sum: Rank sum of the first sample

    Returns:
        p-value in [0, 1]
    """
    scaled = [int(round(2 * r)) for r in ranks]
    n = len(scaled)

    # counts[j][s] = number of j-subsets of the ranks seen so far summing to s
    counts: list[dict[int, int]] = [defaultdict(int) for _ in range(n1 + 1)]
    counts[0][0] = 1
    for value in scaled:
        for j in range(min(n1, n) - 1, -1, -1):
            for s, c in list(counts[j].items()):
                counts[j + 1][s + value] += c

    total = math.comb(n, n1)
    mean_scaled = n1 * sum(scaled) / n
    observed_dev = abs(2 * observed_sum - mean_scaled)
    extreme = sum(
        c for s, c in counts[n1].items() if abs(s - mean_scaled) >= observed_dev - 1e-9
    )
    return min(1.0, extreme / total)


def mann_whitney_u_test(a: ArrayLike, b: ArrayLike) -> MannWhitneyResult:
    """
    Two-sided Mann-Whitney U test comparing samples a and b.

    Effect size is the rank-biserial correlation 2 * U2 / (n_a * n_b) - 1,
    where U2 counts pairs in which b exceeds a (ties count half). Positive
    values mean b tends to be larger, and swapping a and b flips the sign.
    The effect interval is the Wilson interval on the common-language
    effect U2 / (n_a * n_b), mapped through 2x - 1.

    Args:
        a: First sample (non-finite values dropped)
        b: Second sample (non-finite values dropped)

    Returns:
        MannWhitneyResult. method is "exact" when n_a + n_b <= EXACT_MAX_N,
        "normal" otherwise, and None with NaN fields when a sample is empty.
    """
    xa = as_float_array(a)
    xb = as_float_array(b)
    xa = xa[np.isfinite(xa)]
    xb = xb[np.isfinite(xb)]
    n1, n2 = xa.size, xb.size

    if n1 == 0 or n2 == 0:
        logger.warning(
            f"Mann-Whitney test needs two non-empty samples (got {n1} and {n2})"
        )
        return MannWhitneyResult(
            n_a=n1, n_b=n2, warning="Insufficient data: both samples must be non-empty"
        )

    pooled = np.concatenate([xa, xb])
    ranks = assign_ranks(pooled)
    rank_sum_a = float(ranks[:n1].sum())
    u1 = rank_sum_a - n1 * (n1 + 1) / 2
    n_pairs = n1 * n2
    u2 = n_pairs - u1
    u = min(u1, u2)
    n = n1 + n2

    mu = n_pairs / 2
    _, tie_counts = np.unique(pooled, return_counts=True)
    tie_term = float(np.sum(tie_counts**3 - tie_counts)) / (n * (n - 1)) if n > 1 else 0.0
    sigma = math.sqrt(n_pairs / 12 * ((n + 1) - tie_term)) if n > 1 else 0.0

    if n <= HTC.EXACT_MAX_N:
        method = "exact"
        z = math.nan
        p = exact_rank_sum_p_value(ranks, n1, rank_sum_a)
    else:
        method = "normal"
        if sigma > 0:
            corrected = max(0.0, abs(u1 - mu) - HTC.CONTINUITY_CORRECTION)
            z = math.copysign(corrected / sigma, u1 - mu)
            p = min(1.0, 2 * (1 - normal_cdf(abs(z))))
        else:
            z = 0.0
            p = 1.0

    common_language = u2 / n_pairs
    effect = 2 * common_language - 1
    cl_low, cl_high = wilson_interval(common_language, n_pairs, SC.CONFIDENCE_Z)

    return MannWhitneyResult(
        u=u,
        u1=u1,
        u2=u2,
        z=z,
        p=p,
        method=method,
        effect=effect,
        effect_ci_low=2 * cl_low - 1,
        effect_ci_high=2 * cl_high - 1,
        n_a=n1,
        n_b=n2,
    )
