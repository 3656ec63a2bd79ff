"""
One-dimensional k-means over event onset times.

Initialization is deterministic: centroids start at evenly spaced quantiles
of the onset times, so repeated runs on the same input always return the
same clusters without needing a random seed.
"""

import logging

import numpy as np

from cpap_insight.analysis.clustering.common import (
    ReadingIndex,
    build_cluster,
    offsets_seconds,
)
from cpap_insight.analysis.clustering.types import Cluster, ClusterParams, KMeansMeta
from cpap_insight.constants import ClusteringConstants as CC
from cpap_insight.models.events import FlowLimitationReading, RespiratoryEvent

logger = logging.getLogger(__name__)

__all__ = ["cluster_kmeans", "kmeans_1d"]


def kmeans_1d(
    points: np.ndarray, k: int, max_iterations: int
) -> tuple[np.ndarray, KMeansMeta]:
    """
    Lloyd's algorithm on sorted 1-D points with quantile initialization.

    Ties in distance go to the lower-index centroid. A centroid that loses
    all its points keeps its previous position.

    Args:
        points: Sorted onset offsets in seconds
        k: Requested number of groups (capped at the number of points)
        max_iterations: Iteration cap

    Returns:
        (labels, meta)
    """
    n = points.size
    k_eff = min(k, n)
    centroids = np.quantile(points, np.linspace(0.0, 1.0, k_eff))
    labels = np.full(n, -1)
    converged = False
    iterations = 0

    for iterations in range(1, max_iterations + 1):
        new_labels = np.argmin(np.abs(points[:, None] - centroids[None, :]), axis=1)
        if np.array_equal(new_labels, labels):
            converged = True
            break
        labels = new_labels
        for j in range(k_eff):
            members = points[labels == j]
            if members.size:
                centroids[j] = members.mean()

    wcss = float(np.sum((points - centroids[labels]) ** 2))
    max_reached = not converged and iterations >= max_iterations
    meta = KMeansMeta(
        converged=converged,
        iterations=iterations,
        wcss=wcss,
        k_overspecified=k > n / CC.KMEANS_OVERSPECIFIED_RATIO,
        max_iterations_reached=max_reached,
    )
    return labels, meta


def cluster_kmeans(
    events: list[RespiratoryEvent],
    readings: list[FlowLimitationReading],
    params: ClusterParams,
) -> tuple[list[Cluster], KMeansMeta | None]:
    """
    Partition events into params.k groups by onset time.

    Args:
        events: Time-sorted apnea events
        readings: Time-sorted flow-limitation readings (for peak level)
        params: Clustering configuration (k, max_iterations)

    Returns:
        (clusters in start-time order, convergence metadata or None when empty)
    """
    if not events:
        return [], None

    points = np.array(offsets_seconds(events), dtype=float)
    labels, meta = kmeans_1d(points, params.k, params.max_iterations)

    if meta.max_iterations_reached:
        logger.warning(
            f"k-means stopped after {meta.iterations} iterations without converging "
            f"(k={params.k}, n={len(events)})"
        )
    if meta.k_overspecified:
        logger.debug(f"k={params.k} is large relative to {len(events)} events")

    index = ReadingIndex(readings)
    clusters = []
    for label in sorted(set(labels.tolist())):
        members = [e for e, lab in zip(events, labels) if lab == label]
        clusters.append(build_cluster(members, index))
    clusters.sort(key=lambda c: c.start)
    return clusters, meta
