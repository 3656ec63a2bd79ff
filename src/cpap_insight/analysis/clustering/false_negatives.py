"""
Detection of probable missed apneas.

Looks for sustained flow limitation that the device never coded as an
event. Candidates come from the same run grouping the bridging engine uses,
so switching presets only changes thresholds: the pipeline itself is a pure
function of (events, readings, preset, params).
"""

import logging

from collections.abc import Iterable

from cpap_insight.analysis.clustering.bridged import group_flow_limitation_runs
from cpap_insight.analysis.clustering.common import shift
from cpap_insight.analysis.clustering.config import get_preset
from cpap_insight.analysis.clustering.types import (
    ClusterParams,
    FalseNegativeCandidate,
    FalseNegativePreset,
    FlowLimitationRun,
)
from cpap_insight.constants import SCORED_EVENT_KINDS
from cpap_insight.constants import FalseNegativeConstants as FNC
from cpap_insight.models.events import (
    FlowLimitationReading,
    RespiratoryEvent,
    sort_events,
    sort_readings,
)

logger = logging.getLogger(__name__)

__all__ = ["detect_false_negatives"]


def _overlaps_coded_event(
    run: FlowLimitationRun, events: list[RespiratoryEvent], window_sec: float
) -> bool:
    lo = shift(run.start, -window_sec)
    hi = shift(run.end, window_sec)
    return any(e.timestamp <= hi and e.end >= lo for e in events)


def detect_false_negatives(
    events: Iterable[RespiratoryEvent],
    readings: Iterable[FlowLimitationReading],
    preset: str | FalseNegativePreset = FNC.DEFAULT_PRESET,
    params: ClusterParams | None = None,
) -> list[FalseNegativeCandidate]:
    """
    Flow-limitation runs that look like apneas the device did not score.

    A run is built from readings at or above the preset's effective
    threshold, max(fl_threshold, bridge_threshold * bridge_scale), with
    readings no more than bridge_sec apart. It becomes a candidate when:
    - its duration is between min_duration_sec and max_duration_sec
    - no obstructive, clear-airway, or hypopnea event lies within
      EVENT_EXCLUSION_WINDOW_SEC of it
    - its peak level is at least min_confidence

    Args:
        events: Coded respiratory events (any kinds; only scored kinds exclude)
        readings: Flow-limitation signal
        preset: Preset name or FalseNegativePreset
        params: Clustering configuration (bridge_threshold, bridge_sec)

    Returns:
        Candidates in time order

    Raises:
        ValueError: If the preset name is not recognized
    """
    if isinstance(preset, str):
        preset = get_preset(preset)
    params = params or ClusterParams()

    scored = [e for e in sort_events(list(events)) if e.kind in SCORED_EVENT_KINDS]
    threshold = preset.effective_threshold(params.bridge_threshold)
    runs = group_flow_limitation_runs(
        sort_readings(list(readings)), threshold, params.bridge_sec
    )

    candidates: list[FalseNegativeCandidate] = []
    for run in runs:
        if not (preset.min_duration_sec <= run.duration_sec <= preset.max_duration_sec):
            continue
        if _overlaps_coded_event(run, scored, FNC.EVENT_EXCLUSION_WINDOW_SEC):
            continue
        if run.peak_level < preset.min_confidence:
            continue
        candidates.append(
            FalseNegativeCandidate(
                start=run.start,
                end=run.end,
                duration_sec=run.duration_sec,
                confidence=min(run.peak_level, 1.0),
                peak_flg_level=run.peak_level,
                reading_count=run.reading_count,
                preset=preset.name,
            )
        )

    logger.info(
        f"False-negative scan ({preset.name}): {len(runs)} flow-limitation runs, "
        f"{len(candidates)} candidates"
    )
    return candidates
