"""
Clustering entry point.

Dispatches to one of three strategy functions by ClusterParams.algorithm.
Every strategy takes time-sorted events and readings and returns Clusters of
the same shape, so callers never need to know which one ran.
"""

import logging

from collections.abc import Callable, Iterable

from cpap_insight.analysis.clustering.agglomerative import cluster_agglomerative
from cpap_insight.analysis.clustering.bridged import cluster_bridged
from cpap_insight.analysis.clustering.kmeans import cluster_kmeans
from cpap_insight.analysis.clustering.types import (
    Cluster,
    ClusteringResult,
    ClusterParams,
    KMeansMeta,
)
from cpap_insight.constants import APNEA_EVENT_KINDS, ClusterAlgorithm, EventKind
from cpap_insight.models.events import (
    FlowLimitationReading,
    RespiratoryEvent,
    sort_events,
    sort_readings,
)

logger = logging.getLogger(__name__)

__all__ = ["cluster_events", "select_apnea_events", "CLUSTERING_STRATEGIES"]

Strategy = Callable[
    [list[RespiratoryEvent], list[FlowLimitationReading], ClusterParams],
    tuple[list[Cluster], KMeansMeta | None],
]


def _without_meta(
    func: Callable[
        [list[RespiratoryEvent], list[FlowLimitationReading], ClusterParams],
        list[Cluster],
    ],
) -> Strategy:
    def run(events, readings, params):
        return func(events, readings, params), None

    run.__name__ = func.__name__
    return run


CLUSTERING_STRATEGIES: dict[ClusterAlgorithm, Strategy] = {
    ClusterAlgorithm.BRIDGED: _without_meta(cluster_bridged),
    ClusterAlgorithm.KMEANS: cluster_kmeans,
    ClusterAlgorithm.AGGLOMERATIVE: _without_meta(cluster_agglomerative),
}


def select_apnea_events(
    events: Iterable[RespiratoryEvent],
    kinds: frozenset[EventKind] = APNEA_EVENT_KINDS,
) -> list[RespiratoryEvent]:
    """Keep only events of the given kinds (obstructive and clear-airway by default)."""
    return [e for e in events if e.kind in kinds]


def cluster_events(
    events: Iterable[RespiratoryEvent],
    readings: Iterable[FlowLimitationReading] | None = None,
    params: ClusterParams | None = None,
) -> ClusteringResult:
    """
    Group respiratory events into clusters.

    Input is sorted defensively; an empty event list gives an empty result.

    Args:
        events: Apnea events (already filtered to the kinds of interest)
        readings: Flow-limitation signal, used for bridging, edge extension
            and peak level
        params: Clustering configuration, defaults when None

    Returns:
        ClusteringResult with clusters in start-time order

    Raises:
        ValueError: If params.algorithm has no registered strategy
    """
    params = params or ClusterParams()
    strategy = CLUSTERING_STRATEGIES.get(params.algorithm)
    if strategy is None:
        raise ValueError(
            f"Unknown clustering algorithm: {params.algorithm}. "
            f"Available: {[a.value for a in CLUSTERING_STRATEGIES]}"
        )

    ordered_events = sort_events(list(events))
    ordered_readings = sort_readings(list(readings or []))

    clusters, meta = strategy(ordered_events, ordered_readings, params)

    if params.min_density > 0:
        clusters = [c for c in clusters if c.density >= params.min_density]

    logger.info(
        f"Clustered {len(ordered_events)} events into {len(clusters)} clusters "
        f"using {params.algorithm.value}"
    )
    return ClusteringResult(algorithm=params.algorithm, clusters=clusters, meta=meta)
