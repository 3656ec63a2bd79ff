"""Helpers shared by every clustering strategy."""

import bisect
import math

from datetime import datetime, timedelta

from cpap_insight.analysis.clustering.types import Cluster
from cpap_insight.constants import SECONDS_PER_MINUTE
from cpap_insight.models.events import FlowLimitationReading, RespiratoryEvent


class ReadingIndex:
    """Time-sorted flow-limitation readings with range lookups."""

    def __init__(self, readings: list[FlowLimitationReading]):
        self.readings = readings
        self.times = [r.timestamp for r in readings]

    def between(self, start: datetime, end: datetime) -> list[FlowLimitationReading]:
        """Readings with start <= timestamp <= end."""
        lo = bisect.bisect_left(self.times, start)
        hi = bisect.bisect_right(self.times, end)
        return self.readings[lo:hi]

    def peak(self, start: datetime, end: datetime) -> float:
        """Highest level within [start, end], NaN if no reading falls inside."""
        window = self.between(start, end)
        if not window:
            return math.nan
        return max(r.level for r in window)


def seconds_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds()


def build_cluster(
    events: list[RespiratoryEvent],
    index: ReadingIndex,
    start: datetime | None = None,
    end: datetime | None = None,
) -> Cluster:
    """
    Create a Cluster from time-ordered member events.

    Density is measured over the event window (first onset to last event
    end) even when start/end have been extended by edge segments.

    Args:
        events: Member events, sorted by onset, non-empty
        index: Flow-limitation readings for the peak level
        start: Override for the cluster start (edge extension)
        end: Override for the cluster end (edge extension)
    """
    first_onset = events[0].timestamp
    last_end = max(e.end for e in events)
    start = min(start, first_onset) if start is not None else first_onset
    end = max(end, last_end) if end is not None else last_end

    total_event_sec = sum(e.duration_sec for e in events)
    window_min = max(seconds_between(first_onset, last_end), 1.0) / SECONDS_PER_MINUTE

    return Cluster(
        start=start,
        end=end,
        duration_sec=seconds_between(start, end),
        count=len(events),
        events=list(events),
        peak_flg_level=index.peak(start, end),
        density=len(events) / window_min,
        weighted_density=total_event_sec / window_min,
        total_event_duration_sec=total_event_sec,
    )


def offsets_seconds(events: list[RespiratoryEvent]) -> list[float]:
    """Event onsets as seconds after the first onset."""
    origin = events[0].timestamp
    return [seconds_between(origin, e.timestamp) for e in events]


def shift(ts: datetime, seconds: float) -> datetime:
    return ts + timedelta(seconds=seconds)
