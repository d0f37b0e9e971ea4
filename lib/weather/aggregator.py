"""
Forecast Aggregator

Pure functions turning fine-grained forecast slices into coarser series.
"""

import datetime
from typing import Dict, List, Sequence

from .models import ForecastSlice

DAILY_REFERENCE_HOUR = 12  # Daily slices are stamped at noon UTC


def downsample(slices: Sequence[ForecastSlice], step: int = 3) -> List[ForecastSlice]:
    """
    Keep every `step`-th slice (by index, starting with the first one)

    Args:
        slices: Fine-grained slices (e.g., hourly)
        step: Keep one slice out of `step` (hourly -> 3-hour with step=3)

    Returns:
        Downsampled slices in the original order
    """
    if step < 1:
        raise ValueError(f"Downsample step must be positive, got {step}")
    return list(slices[::step])


def aggregateDaily(slices: Sequence[ForecastSlice]) -> List[ForecastSlice]:
    """
    Derive one daily slice per UTC calendar day

    For each day:
        - min/max: over each slice's own min/max temperature if present,
          its point temperature otherwise
        - temperature: (min + max) / 2
        - condition: taken from the earliest slice of the day. This tie-break
          is arbitrary but deterministic.
        - timestamp: DAILY_REFERENCE_HOUR:00 UTC of that day

    Args:
        slices: Fine-grained slices, any order

    Returns:
        Daily slices sorted by day, empty list for empty input
    """
    byDay: Dict[datetime.date, List[ForecastSlice]] = {}
    for forecastSlice in slices:
        day = forecastSlice.timestamp.astimezone(datetime.timezone.utc).date()
        byDay.setdefault(day, []).append(forecastSlice)

    result: List[ForecastSlice] = []
    for day in sorted(byDay):
        daySlices = byDay[day]
        minTemp = min(s.minTemperature if s.minTemperature is not None else s.temperature for s in daySlices)
        maxTemp = max(s.maxTemperature if s.maxTemperature is not None else s.temperature for s in daySlices)
        reference = min(daySlices, key=lambda s: s.timestamp)

        result.append(
            ForecastSlice(
                timestamp=datetime.datetime(
                    day.year, day.month, day.day, DAILY_REFERENCE_HOUR, tzinfo=datetime.timezone.utc
                ),
                temperature=(minTemp + maxTemp) / 2,
                conditionCode=reference.conditionCode,
                conditionLabel=reference.conditionLabel,
                minTemperature=minTemp,
                maxTemperature=maxTemp,
            )
        )

    return result
