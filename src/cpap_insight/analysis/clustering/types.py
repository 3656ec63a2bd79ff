"""
Type definitions for respiratory event clustering.

All models are frozen: parameters are supplied by the caller and never
changed by the engine, and clusters are only ever replaced (via
model_copy) when finalization attaches a severity score.
"""

import math

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cpap_insight.constants import ClusterAlgorithm
from cpap_insight.constants import ClusteringConstants as CC
from cpap_insight.constants import FalseNegativeConstants as FNC
from cpap_insight.models.events import RespiratoryEvent

__all__ = [
    "ClusterParams",
    "Cluster",
    "KMeansMeta",
    "ClusteringResult",
    "FalseNegativePreset",
    "FalseNegativeCandidate",
    "FlowLimitationRun",
]

# ============================================================================
# Configuration
# ============================================================================


class ClusterParams(BaseModel):
    """
    Clustering configuration.

    Attributes:
        gap_sec: Maximum gap between events in one cluster
        bridge_threshold: Flow-limitation level that can bridge a longer gap
        bridge_sec: Longest gap a flow-limitation bridge may span
        algorithm: Clustering strategy
        k: Number of groups for k-means
        linkage_threshold_sec: Merge distance for agglomerative clustering
        min_count: Minimum events per finalized cluster
        min_total_sec: Minimum summed event duration per finalized cluster
        max_cluster_sec: Maximum span of a finalized cluster
        min_density: Minimum events per minute (0 disables the filter)
        edge_enter: Flow-limitation level that opens an edge segment
        edge_exit: Level below which an edge segment closes
        edge_min_duration_sec: Shortest edge segment that extends a cluster
        max_iterations: k-means iteration cap
    """

    model_config = ConfigDict(frozen=True)

    gap_sec: float = Field(default=CC.GAP_SEC, ge=0)
    bridge_threshold: float = Field(default=CC.BRIDGE_THRESHOLD, ge=0)
    bridge_sec: float = Field(default=CC.BRIDGE_SEC, ge=0)
    algorithm: ClusterAlgorithm = ClusterAlgorithm.BRIDGED
    k: int = Field(default=CC.K, ge=1)
    linkage_threshold_sec: float = Field(default=CC.LINKAGE_THRESHOLD_SEC, ge=0)

    min_count: int = Field(default=CC.MIN_COUNT, ge=0)
    min_total_sec: float = Field(default=CC.MIN_TOTAL_SEC, ge=0)
    max_cluster_sec: float = Field(default=CC.MAX_CLUSTER_SEC, gt=0)
    min_density: float = Field(default=CC.MIN_DENSITY, ge=0)

    edge_enter: float = Field(default=CC.EDGE_ENTER_THRESHOLD, ge=0)
    edge_exit: float = Field(
        default=CC.EDGE_ENTER_THRESHOLD * CC.EDGE_EXIT_FRACTION, ge=0
    )
    edge_min_duration_sec: float = Field(default=CC.EDGE_MIN_DURATION_SEC, ge=0)

    max_iterations: int = Field(default=CC.KMEANS_MAX_ITERATIONS, ge=1)

    @model_validator(mode="after")
    def check_edge_hysteresis(self) -> "ClusterParams":
        if self.edge_exit > self.edge_enter:
            raise ValueError(
                f"edge_exit ({self.edge_exit}) must not exceed edge_enter "
                f"({self.edge_enter})"
            )
        return self


# ============================================================================
# Clusters
# ============================================================================


class Cluster(BaseModel):
    """
    A group of temporally related respiratory events.

    Attributes:
        start: Cluster start (first event onset, or an earlier edge segment)
        end: Cluster end (last event end, or a later edge segment)
        duration_sec: end - start in seconds
        count: Number of member events
        events: Member events in time order
        peak_flg_level: Highest flow-limitation level within the span (NaN if
            no readings fall inside it)
        severity: Severity score, attached during finalization
        density: Events per minute over the event window
        weighted_density: Event seconds per minute over the event window
        total_event_duration_sec: Sum of member event durations
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    duration_sec: float = Field(ge=0)
    count: int = Field(ge=1)
    events: list[RespiratoryEvent] = Field(default_factory=list)
    peak_flg_level: float = math.nan
    severity: float = Field(default=0.0, ge=0)
    density: float = math.nan
    weighted_density: float = math.nan
    total_event_duration_sec: float = Field(default=0.0, ge=0)


class KMeansMeta(BaseModel):
    """Convergence diagnostics for a k-means run."""

    converged: bool
    iterations: int = Field(ge=0)
    wcss: float = Field(ge=0, description="Within-cluster sum of squares (s^2)")
    k_overspecified: bool
    max_iterations_reached: bool


class ClusteringResult(BaseModel):
    """Clusters in start-time order plus algorithm-specific diagnostics."""

    algorithm: ClusterAlgorithm
    clusters: list[Cluster] = Field(default_factory=list)
    meta: KMeansMeta | None = None


# ============================================================================
# False-Negative Detection
# ============================================================================


class FalseNegativePreset(BaseModel):
    """
    Named threshold set for the false-negative detector.

    Attributes:
        name: Preset identifier
        description: What the preset favors
        min_confidence: Minimum peak flow-limitation level of a candidate
        min_duration_sec: Minimum candidate duration
        fl_threshold: Base flow-limitation level for run membership
        bridge_scale: Multiplier on the clustering bridge threshold
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    min_confidence: float = Field(ge=0, le=1)
    min_duration_sec: float = Field(ge=0)
    fl_threshold: float = Field(ge=0)
    bridge_scale: float = Field(default=1.0, gt=0)
    max_duration_sec: float = Field(default=FNC.MAX_DURATION_SEC, gt=0)

    def effective_threshold(self, bridge_threshold: float) -> float:
        """Run-membership threshold given the clustering bridge threshold."""
        return max(self.fl_threshold, bridge_threshold * self.bridge_scale)


class FalseNegativeCandidate(BaseModel):
    """Sustained flow limitation with no coded event nearby."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    duration_sec: float = Field(ge=0)
    confidence: float
    peak_flg_level: float
    reading_count: int = Field(ge=1)
    preset: str


class FlowLimitationRun(BaseModel):
    """Consecutive flow-limitation readings that stayed above a threshold."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    peak_level: float
    reading_count: int = Field(ge=1)

    @property
    def duration_sec(self) -> float:
        return (self.end - self.start).total_seconds()
