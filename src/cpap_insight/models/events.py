"""Pydantic models for respiratory events and the flow-limitation signal."""

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from cpap_insight.constants import APNEA_EVENT_KINDS, EventKind


class RespiratoryEvent(BaseModel):
    """
    A discrete, device-coded respiratory event.

    Attributes:
        timestamp: Event onset
        kind: Event classification
        duration_sec: Event duration in seconds
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    kind: EventKind
    duration_sec: float = Field(ge=0, description="Event duration (seconds)")

    @property
    def end(self) -> datetime:
        """Timestamp at which the event finishes."""
        return self.timestamp + timedelta(seconds=self.duration_sec)

    @property
    def is_apnea(self) -> bool:
        return self.kind in APNEA_EVENT_KINDS


class FlowLimitationReading(BaseModel):
    """
    One sample of the continuous flow-limitation (FLG) signal.

    Attributes:
        timestamp: Sample time
        level: Flow limitation level (0 = none, 1 = fully limited)
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    level: float = Field(ge=0, description="Flow limitation level")


def sort_events(events: list[RespiratoryEvent]) -> list[RespiratoryEvent]:
    """Return events ordered by onset time."""
    return sorted(events, key=lambda e: e.timestamp)


def sort_readings(
    readings: list[FlowLimitationReading] | None,
) -> list[FlowLimitationReading]:
    """Return flow-limitation readings ordered by time (None -> empty)."""
    return sorted(readings or [], key=lambda r: r.timestamp)
