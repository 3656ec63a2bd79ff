"""
Synthetic test data generators for nightly series, events and night records.

Provides functions to generate controlled, reproducible test data for unit testing.
"""

from datetime import date, datetime, timedelta

import numpy as np

from cpap_insight.constants import EventKind
from cpap_insight.models.events import FlowLimitationReading, RespiratoryEvent
from cpap_insight.models.nights import DeviceNight, WearableNight
from cpap_insight.models.series import Sample, Series

BASE_TIME = datetime(2025, 3, 1, 23, 0, 0)
BASE_DATE = date(2025, 3, 1)


def make_events(
    specs: list[tuple[float, float]],
    kind: EventKind = EventKind.OBSTRUCTIVE,
    base: datetime = BASE_TIME,
) -> list[RespiratoryEvent]:
    """
    Build events from (offset_sec, duration_sec) pairs.

    Args:
        specs: Onset offsets from base and durations, in seconds
        kind: Event kind for every event
        base: Reference time

    Returns:
        List of RespiratoryEvent in the given order
    """
    return [
        RespiratoryEvent(
            timestamp=base + timedelta(seconds=offset), kind=kind, duration_sec=dur
        )
        for offset, dur in specs
    ]


def make_readings(
    specs: list[tuple[float, float]], base: datetime = BASE_TIME
) -> list[FlowLimitationReading]:
    """Build flow-limitation readings from (offset_sec, level) pairs."""
    return [
        FlowLimitationReading(timestamp=base + timedelta(seconds=offset), level=level)
        for offset, level in specs
    ]


def flat_readings(
    start_sec: float,
    end_sec: float,
    level: float,
    step_sec: float = 2.0,
    base: datetime = BASE_TIME,
) -> list[FlowLimitationReading]:
    """Constant-level flow-limitation readings every step_sec over [start, end]."""
    offsets = np.arange(start_sec, end_sec + step_sec / 2, step_sec)
    return make_readings([(float(t), level) for t in offsets], base)


def make_series(
    values: list[float | None],
    start: date = BASE_DATE,
    skip_days: set[int] | None = None,
    name: str = "usage_hours",
) -> Series:
    """
    Build a daily series, optionally leaving calendar gaps.

    Args:
        values: Sample values (None -> NaN)
        start: Date of the first sample
        skip_days: Positions after which one calendar day is skipped
        name: Series name

    Returns:
        Series with ascending dates
    """
    skip_days = skip_days or set()
    samples = []
    day = start
    for i, value in enumerate(values):
        samples.append(Sample(date=day, value=value))
        day += timedelta(days=2 if i in skip_days else 1)
    return Series(name=name, samples=samples)


def weekly_usage(
    weeks: int = 8,
    base_hours: float = 6.5,
    weekend_bonus: float = 1.5,
    trend_per_day: float = 0.0,
    noise: float = 0.0,
    seed: int = 42,
) -> np.ndarray:
    """
    Nightly usage hours with a weekly cycle.

    Args:
        weeks: Number of weeks
        base_hours: Weekday usage
        weekend_bonus: Extra hours on the last two nights of each week
        trend_per_day: Linear drift per night
        noise: Standard deviation of Gaussian noise
        seed: Random seed

    Returns:
        Array of length 7 * weeks
    """
    rng = np.random.default_rng(seed)
    n = weeks * 7
    days = np.arange(n)
    weekly = np.where(days % 7 >= 5, weekend_bonus, 0.0)
    return base_hours + weekly + trend_per_day * days + rng.normal(0, noise, n)


def make_device_night(
    start: datetime,
    usage_hours: float | None = 7.0,
    ahi: float | None = 3.0,
    **kwargs,
) -> DeviceNight:
    """Device night with sensible defaults."""
    return DeviceNight(session_start=start, usage_hours=usage_hours, ahi=ahi, **kwargs)


def make_wearable_night(
    day: date,
    minutes_asleep: float | None = 420.0,
    resting_hr: float | None = 58.0,
    **kwargs,
) -> WearableNight:
    """Wearable night with sensible defaults."""
    return WearableNight(
        date=day, minutes_asleep=minutes_asleep, resting_hr=resting_hr, **kwargs
    )
