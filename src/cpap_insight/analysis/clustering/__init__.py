"""
Respiratory event clustering and false-negative detection.

Provides the clustering entry point, the three strategies it dispatches to,
finalization/severity scoring, and the preset-driven false-negative scan.
"""

from cpap_insight.analysis.clustering.config import (
    DEFAULT_PRESET,
    FALSE_NEGATIVE_PRESETS,
    get_preset,
    load_cluster_params,
)
from cpap_insight.analysis.clustering.engine import (
    CLUSTERING_STRATEGIES,
    cluster_events,
    select_apnea_events,
)
from cpap_insight.analysis.clustering.false_negatives import detect_false_negatives
from cpap_insight.analysis.clustering.finalize import (
    clusters_to_rows,
    compute_cluster_severity,
    finalize_clusters,
)
from cpap_insight.analysis.clustering.types import (
    Cluster,
    ClusteringResult,
    ClusterParams,
    FalseNegativeCandidate,
    FalseNegativePreset,
    KMeansMeta,
)

__all__ = [
    "CLUSTERING_STRATEGIES",
    "DEFAULT_PRESET",
    "FALSE_NEGATIVE_PRESETS",
    "Cluster",
    "ClusterParams",
    "ClusteringResult",
    "FalseNegativeCandidate",
    "FalseNegativePreset",
    "KMeansMeta",
    "cluster_events",
    "clusters_to_rows",
    "compute_cluster_severity",
    "detect_false_negatives",
    "finalize_clusters",
    "get_preset",
    "load_cluster_params",
    "select_apnea_events",
]
