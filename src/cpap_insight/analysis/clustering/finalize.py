"""Cluster filtering, severity scoring, and flat export rows."""

import logging

from typing import Any

from cpap_insight.analysis.clustering.types import Cluster, ClusterParams
from cpap_insight.constants import ClusteringConstants as CC
from cpap_insight.constants import SECONDS_PER_MINUTE

logger = logging.getLogger(__name__)

__all__ = ["compute_cluster_severity", "finalize_clusters", "clusters_to_rows"]

EXPORT_COLUMNS = ["index", "start", "end", "duration_sec", "count", "severity"]


def compute_cluster_severity(cluster: Cluster) -> float:
    """
    Severity score for a cluster.

    Sum of three non-negative terms: apnea minutes, event count relative to
    CLUSTER_COUNT_ALERT, and span relative to CLUSTER_DURATION_ALERT_SEC.
    The score grows with each of total event duration, count, and span.
    """
    total_sec = sum(e.duration_sec for e in cluster.events)
    return (
        total_sec / SECONDS_PER_MINUTE
        + cluster.count / CC.CLUSTER_COUNT_ALERT
        + cluster.duration_sec / CC.CLUSTER_DURATION_ALERT_SEC
    )


def finalize_clusters(
    clusters: list[Cluster] | None, params: ClusterParams | None = None
) -> list[Cluster]:
    """
    Filter raw clusters and attach severity.

    A cluster survives when count >= min_count, the summed duration of its
    events >= min_total_sec, and its span <= max_cluster_sec. Very long spans
    are usually unrelated events that happened to fall close together.

    Args:
        clusters: Raw clusters (None is treated as empty)
        params: Filter thresholds, defaults when None

    Returns:
        New Cluster objects with severity set, in input order
    """
    if not clusters:
        return []
    params = params or ClusterParams()

    kept: list[Cluster] = []
    for cluster in clusters:
        total_sec = sum(e.duration_sec for e in cluster.events)
        if cluster.count < params.min_count:
            continue
        if total_sec < params.min_total_sec:
            continue
        if cluster.duration_sec > params.max_cluster_sec:
            continue
        kept.append(
            cluster.model_copy(update={"severity": compute_cluster_severity(cluster)})
        )

    logger.debug(f"Finalized {len(kept)} of {len(clusters)} clusters")
    return kept


def clusters_to_rows(clusters: list[Cluster]) -> list[dict[str, Any]]:
    """
    Flatten clusters for tabular export.

    Returns:
        One dict per cluster keyed by EXPORT_COLUMNS, timestamps as ISO strings
    """
    return [
        {
            "index": i,
            "start": c.start.isoformat(),
            "end": c.end.isoformat(),
            "duration_sec": c.duration_sec,
            "count": c.count,
            "severity": c.severity,
        }
        for i, c in enumerate(clusters)
    ]
