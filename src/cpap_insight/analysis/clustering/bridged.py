"""
Gap-bridged event clustering.

Events join the current cluster when the gap since the cluster's last event
end is within gap_sec. A longer gap (up to bridge_sec) is still bridged when
the flow-limitation signal stayed at or above bridge_threshold for the whole
gap, which models sustained partial obstruction between coded events.
Edge segments of elevated flow limitation just before or after a cluster
extend its start and end.
"""

import logging

from datetime import datetime

from cpap_insight.analysis.clustering.common import (
    ReadingIndex,
    build_cluster,
    seconds_between,
    shift,
)
from cpap_insight.analysis.clustering.types import (
    Cluster,
    ClusterParams,
    FlowLimitationRun,
)
from cpap_insight.models.events import FlowLimitationReading, RespiratoryEvent

logger = logging.getLogger(__name__)

__all__ = [
    "cluster_bridged",
    "group_flow_limitation_runs",
    "find_edge_segments",
    "is_gap_bridged",
]


def group_flow_limitation_runs(
    readings: list[FlowLimitationReading],
    threshold: float,
    max_spacing_sec: float,
) -> list[FlowLimitationRun]:
    """
    Group readings at or above threshold into runs.

    Consecutive qualifying readings more than max_spacing_sec apart, or
    separated by a reading below threshold, start a new run.

    Args:
        readings: Time-sorted flow-limitation readings
        threshold: Minimum level for run membership
        max_spacing_sec: Largest spacing between readings within a run

    Returns:
        Runs in time order
    """
    runs: list[FlowLimitationRun] = []
    current: list[FlowLimitationReading] = []

    def close() -> None:
        if current:
            runs.append(
                FlowLimitationRun(
                    start=current[0].timestamp,
                    end=current[-1].timestamp,
                    peak_level=max(r.level for r in current),
                    reading_count=len(current),
                )
            )
            current.clear()

    for reading in readings:
        if reading.level < threshold:
            close()
            continue
        spacing = (
            seconds_between(current[-1].timestamp, reading.timestamp) if current else 0.0
        )
        if spacing > max_spacing_sec:
            close()
        current.append(reading)
    close()
    return runs


def find_edge_segments(
    readings: list[FlowLimitationReading], params: ClusterParams
) -> list[FlowLimitationRun]:
    """
    Hysteresis segmentation of the flow-limitation signal.

    A segment opens at a reading >= edge_enter and stays open while readings
    remain >= edge_exit. Segments shorter than edge_min_duration_sec are
    dropped.
    """
    segments: list[FlowLimitationRun] = []
    current: list[FlowLimitationReading] = []

    for reading in readings:
        if current:
            if reading.level >= params.edge_exit:
                current.append(reading)
                continue
            segments.append(
                FlowLimitationRun(
                    start=current[0].timestamp,
                    end=current[-1].timestamp,
                    peak_level=max(r.level for r in current),
                    reading_count=len(current),
                )
            )
            current = []
        if reading.level >= params.edge_enter:
            current.append(reading)

    if current:
        segments.append(
            FlowLimitationRun(
                start=current[0].timestamp,
                end=current[-1].timestamp,
                peak_level=max(r.level for r in current),
                reading_count=len(current),
            )
        )

    return [s for s in segments if s.duration_sec >= params.edge_min_duration_sec]


def is_gap_bridged(
    gap_start: datetime,
    gap_end: datetime,
    index: ReadingIndex,
    params: ClusterParams,
) -> bool:
    """
    Whether flow limitation stayed elevated across a gap between events.

    The gap qualifies when it is no longer than bridge_sec, at least one
    reading falls inside it, and no reading inside it dips below
    bridge_threshold.
    """
    if seconds_between(gap_start, gap_end) > params.bridge_sec:
        return False
    inside = index.between(gap_start, gap_end)
    if not inside:
        return False
    return all(r.level >= params.bridge_threshold for r in inside)


def _extend_with_edges(
    cluster_events: list[RespiratoryEvent],
    segments: list[FlowLimitationRun],
    params: ClusterParams,
) -> tuple[datetime, datetime]:
    start = cluster_events[0].timestamp
    end = max(e.end for e in cluster_events)
    new_start, new_end = start, end

    for seg in segments:
        if seg.start < start and seg.end >= shift(start, -params.gap_sec):
            new_start = min(new_start, seg.start)
        if seg.end > end and seg.start <= shift(end, params.gap_sec):
            new_end = max(new_end, seg.end)
    return new_start, new_end


def cluster_bridged(
    events: list[RespiratoryEvent],
    readings: list[FlowLimitationReading],
    params: ClusterParams,
) -> list[Cluster]:
    """
    Cluster events by gap with flow-limitation bridging and edge extension.

    Args:
        events: Time-sorted apnea events
        readings: Time-sorted flow-limitation readings (may be empty)
        params: Clustering configuration

    Returns:
        Clusters in start-time order
    """
    if not events:
        return []

    index = ReadingIndex(readings)
    groups: list[list[RespiratoryEvent]] = [[events[0]]]
    group_end = events[0].end
    bridged = 0

    for event in events[1:]:
        gap = seconds_between(group_end, event.timestamp)
        if gap <= params.gap_sec:
            groups[-1].append(event)
        elif is_gap_bridged(group_end, event.timestamp, index, params):
            groups[-1].append(event)
            bridged += 1
        else:
            groups.append([event])
            group_end = event.end
            continue
        group_end = max(group_end, event.end)

    segments = find_edge_segments(readings, params) if readings else []

    clusters = []
    for group in groups:
        start, end = _extend_with_edges(group, segments, params)
        clusters.append(build_cluster(group, index, start=start, end=end))

    logger.debug(
        f"Bridged clustering: {len(events)} events -> {len(clusters)} clusters "
        f"({bridged} gaps bridged)"
    )
    return clusters
