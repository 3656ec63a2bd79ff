"""Single-linkage agglomerative clustering of event onset times."""

import logging

import numpy as np

from scipy.cluster.hierarchy import fcluster, linkage

from cpap_insight.analysis.clustering.common import (
    ReadingIndex,
    build_cluster,
    offsets_seconds,
)
from cpap_insight.analysis.clustering.types import Cluster, ClusterParams
from cpap_insight.models.events import FlowLimitationReading, RespiratoryEvent

logger = logging.getLogger(__name__)

__all__ = ["cluster_agglomerative"]


def cluster_agglomerative(
    events: list[RespiratoryEvent],
    readings: list[FlowLimitationReading],
    params: ClusterParams,
) -> list[Cluster]:
    """
    Merge events while the onset distance to a neighbour is within threshold.

    Single linkage on one-dimensional onset times: two events end up in the
    same cluster when a chain of onsets each at most linkage_threshold_sec
    apart connects them.

    Args:
        events: Time-sorted apnea events
        readings: Time-sorted flow-limitation readings (for peak level)
        params: Clustering configuration (linkage_threshold_sec)

    Returns:
        Clusters in start-time order
    """
    if not events:
        return []

    index = ReadingIndex(readings)
    if len(events) == 1:
        return [build_cluster(events, index)]

    points = np.array(offsets_seconds(events), dtype=float).reshape(-1, 1)
    tree = linkage(points, method="single")
    labels = fcluster(tree, t=params.linkage_threshold_sec, criterion="distance")

    groups: dict[int, list[RespiratoryEvent]] = {}
    for event, label in zip(events, labels.tolist()):
        groups.setdefault(label, []).append(event)

    clusters = [build_cluster(members, index) for members in groups.values()]
    clusters.sort(key=lambda c: c.start)
    logger.debug(
        f"Agglomerative clustering: {len(events)} events -> {len(clusters)} clusters"
    )
    return clusters
