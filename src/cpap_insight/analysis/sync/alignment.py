"""
Pairing of CPAP device nights with wearable sleep records.

The two sensors disagree about what "a night" is: the device reports a
session start time, the wearable a sleep date that may be uploaded a day or
two late. Each device night gets a canonical sleep date (sessions starting
before noon local time belong to the previous evening), is matched to the
wearable by that date, and the pairing is validated before analysis.
"""

import logging
import math

from collections import Counter
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from cpap_insight.analysis.sync.types import (
    AlignedNight,
    AlignmentResult,
    AlignmentStatistics,
    AlignmentValidation,
)
from cpap_insight.constants import AlignmentConstants as AC
from cpap_insight.constants import MINUTES_PER_HOUR, MatchType
from cpap_insight.models.nights import DeviceNight, WearableNight

logger = logging.getLogger(__name__)

__all__ = [
    "calculate_sleep_date",
    "validate_alignment",
    "align_nights",
]


def calculate_sleep_date(
    session_start: datetime | None, timezone_offset_min: int = 0
) -> date:
    """
    Canonical sleep date for a session.

    Converts the start to local time by subtracting timezone_offset_min
    (positive west of UTC). Sessions starting before the noon cutoff belong
    to the previous calendar day.

    Args:
        session_start: Session start, UTC
        timezone_offset_min: Local offset in minutes

    Returns:
        Sleep date

    Raises:
        ValueError: If session_start is missing
    """
    if session_start is None:
        raise ValueError("Session start time is required to compute a sleep date")

    local = session_start - timedelta(minutes=timezone_offset_min)
    if local.hour < AC.SLEEP_DATE_CUTOFF_HOUR:
        local -= timedelta(days=1)
    return local.date()


def _wearable_hours(night: WearableNight) -> float:
    if night.minutes_asleep is None:
        return 0.0
    return night.minutes_asleep / MINUTES_PER_HOUR


def validate_alignment(
    device: DeviceNight,
    wearable: WearableNight,
    min_overlap_hours: float = AC.MIN_OVERLAP_HOURS,
    max_duration_diff_hours: float = AC.MAX_DURATION_DIFF_HOURS,
) -> AlignmentValidation:
    """
    Check that a pairing is usable for correlation analysis.

    Errors (night excluded): missing AHI, missing heart rate, overlap below
    min_overlap_hours. Warnings: usage and sleep duration differ by more than
    max_duration_diff_hours, zero device usage, no wearable sleep duration.

    Overlap is the shorter of the two durations. When the wearable reports
    no sleep time (heart-rate-only sync) the device usage is the overlap and
    a short session is only a warning.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if device.ahi is None:
        errors.append("Missing AHI from device")
    if wearable.heart_rate is None:
        errors.append("Missing heart rate from wearable")

    device_hours = device.usage_hours or 0.0
    wearable_hours = _wearable_hours(wearable)
    if device_hours == 0.0:
        warnings.append("Zero device usage")

    if wearable_hours > 0:
        time_difference = abs(device_hours - wearable_hours)
        if time_difference > max_duration_diff_hours:
            warnings.append(
                f"Duration mismatch: device {device_hours:.1f}h vs wearable "
                f"{wearable_hours:.1f}h"
            )
        overlap = min(device_hours, wearable_hours)
        if overlap < min_overlap_hours:
            errors.append(
                f"Insufficient overlap: {overlap:.1f}h < "
                f"{min_overlap_hours:.1f}h required"
            )
    else:
        # Heart-rate-only night: matched by date, device usage is the overlap
        warnings.append("No wearable sleep duration")
        time_difference = 0.0
        overlap = device_hours
        if 0 < device_hours < min_overlap_hours:
            warnings.append(f"Short device session: {device_hours:.1f}h")

    return AlignmentValidation(
        valid=not errors,
        overlap_hours=overlap,
        time_difference_hours=time_difference,
        errors=errors,
        warnings=warnings,
    )


def _duration_gap(device: DeviceNight, wearable: WearableNight) -> float:
    if device.usage_hours is None or wearable.minutes_asleep is None:
        return math.inf
    return abs(device.usage_hours - _wearable_hours(wearable))


def _delay_offsets(max_sync_delay_hours: float) -> list[int]:
    """Day offsets to search for a delayed match, nearest first."""
    window = math.ceil(max_sync_delay_hours / 24)
    offsets: list[int] = []
    for d in range(1, window + 1):
        offsets.extend([-d, d])
    return offsets


def align_nights(
    device_nights: Iterable[DeviceNight],
    wearable_nights: Iterable[WearableNight],
    max_sync_delay_hours: float = AC.MAX_SYNC_DELAY_HOURS,
    min_overlap_hours: float = AC.MIN_OVERLAP_HOURS,
    max_duration_diff_hours: float = AC.MAX_DURATION_DIFF_HOURS,
) -> AlignmentResult:
    """
    Match device nights to wearable nights and validate each pairing.

    Matching order per device night:
    1. Wearable night on the same sleep date ("exact"); with several,
       the closest sleep duration wins ("exact_multiple").
    2. Otherwise the nearest date within the sync-delay window ("delayed"),
       earlier dates first on ties.

    Each wearable night is used at most once. Pairings that fail validation
    go to `invalid`; nights without a partner go to the unmatched lists.

    Args:
        device_nights: Device records
        wearable_nights: Wearable records
        max_sync_delay_hours: How far a delayed match may be from the sleep date
        min_overlap_hours: Minimum shared coverage for a valid night
        max_duration_diff_hours: Duration difference that triggers a warning

    Returns:
        AlignmentResult with statistics
    """
    devices = list(device_nights)
    wearables = list(wearable_nights)

    by_date: dict[date, list[int]] = {}
    for idx, night in enumerate(wearables):
        by_date.setdefault(night.date, []).append(idx)

    used: set[int] = set()
    aligned: list[AlignedNight] = []
    invalid: list[AlignedNight] = []
    offsets = _delay_offsets(max_sync_delay_hours)

    def available(day: date) -> list[int]:
        return [i for i in by_date.get(day, []) if i not in used]

    unmatched_device: list[DeviceNight] = [
        d for d in devices if d.session_start is None
    ]
    if unmatched_device:
        logger.warning(
            f"Skipping {len(unmatched_device)} device night(s) without a session start"
        )
    ordered = sorted(
        (d for d in devices if d.session_start is not None),
        key=lambda d: d.session_start,
    )
    for device in ordered:
        sleep_date = calculate_sleep_date(
            device.session_start, device.timezone_offset_min
        )

        candidates = available(sleep_date)
        if len(candidates) == 1:
            match_type = MatchType.EXACT
        elif len(candidates) > 1:
            match_type = MatchType.EXACT_MULTIPLE
        else:
            match_type = MatchType.DELAYED
            for offset in offsets:
                candidates = available(sleep_date + timedelta(days=offset))
                if candidates:
                    break

        if not candidates:
            unmatched_device.append(device)
            continue

        best = min(candidates, key=lambda i: _duration_gap(device, wearables[i]))
        used.add(best)
        wearable = wearables[best]

        night = AlignedNight(
            sleep_date=sleep_date,
            device=device,
            wearable=wearable,
            match_type=match_type,
            validation=validate_alignment(
                device, wearable, min_overlap_hours, max_duration_diff_hours
            ),
        )
        if night.validation.valid:
            aligned.append(night)
        else:
            logger.debug(
                f"Night {sleep_date} failed validation: {night.validation.errors}"
            )
            invalid.append(night)

    unmatched_wearable = [w for i, w in enumerate(wearables) if i not in used]
    match_types = Counter(n.match_type.value for n in aligned)

    statistics = AlignmentStatistics(
        total_device_nights=len(devices),
        total_wearable_nights=len(wearables),
        aligned_count=len(aligned),
        invalid_count=len(invalid),
        match_rate=len(aligned) / len(devices) if devices else 0.0,
        match_types=dict(match_types),
    )
    logger.info(
        f"Aligned {len(aligned)}/{len(devices)} device nights "
        f"({len(invalid)} invalid, {len(unmatched_device)} unmatched)"
    )

    return AlignmentResult(
        aligned=aligned,
        invalid=invalid,
        unmatched_device=unmatched_device,
        unmatched_wearable=unmatched_wearable,
        statistics=statistics,
    )
