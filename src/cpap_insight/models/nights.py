"""Pydantic models for per-night device and wearable records."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class DeviceNight(BaseModel):
    """
    Nightly summary from the CPAP device (primary sensor).

    Attributes:
        session_start: Session start time, UTC
        timezone_offset_min: Minutes to subtract from UTC to get local time
            (positive west of UTC)
        usage_hours: Therapy usage for the night
        ahi: Apnea-Hypopnea Index (events/hour)
        median_epap: Median expiratory pressure (cmH2O)
        leak_median: Median leak (L/min)
    """

    model_config = ConfigDict(frozen=True)

    session_start: datetime | None
    timezone_offset_min: int = 0
    usage_hours: float | None = Field(default=None, ge=0)
    ahi: float | None = Field(default=None, ge=0)
    median_epap: float | None = None
    leak_median: float | None = None


class WearableNight(BaseModel):
    """
    Nightly sleep summary from the wearable (secondary sensor).

    Attributes:
        date: Sleep date as reported by the wearable
        minutes_asleep: Total sleep time
        resting_hr: Resting heart rate (bpm)
        avg_sleep_hr: Mean heart rate during sleep (bpm)
        hrv_rmssd: Heart rate variability, RMSSD (ms)
        min_spo2: Minimum SpO2 (%)
        avg_spo2: Mean SpO2 (%)
        sleep_efficiency: Sleep efficiency (%)
        deep_sleep_minutes: Minutes of deep sleep
    """

    model_config = ConfigDict(frozen=True)

    date: date
    minutes_asleep: float | None = Field(default=None, ge=0)
    resting_hr: float | None = None
    avg_sleep_hr: float | None = None
    hrv_rmssd: float | None = None
    min_spo2: float | None = None
    avg_spo2: float | None = None
    sleep_efficiency: float | None = None
    deep_sleep_minutes: float | None = None

    @property
    def heart_rate(self) -> float | None:
        """Sleep heart rate, falling back to resting heart rate."""
        return self.avg_sleep_hr if self.avg_sleep_hr is not None else self.resting_hr
