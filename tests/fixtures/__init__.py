"""
Test fixtures package for weather client tests.

- weather_payloads: sample One Call payloads and normalized bundles
- telemetry_mocks: recording telemetry sink
"""

from tests.fixtures.weather_payloads import (
    BASE_TIMESTAMP,
    MOSCOW,
    createAlertEntry,
    createDailyEntries,
    createHourlyEntries,
    createOneCallPayload,
    createWeatherBundle,
)

__all__ = [
    "BASE_TIMESTAMP",
    "MOSCOW",
    "createAlertEntry",
    "createDailyEntries",
    "createHourlyEntries",
    "createOneCallPayload",
    "createWeatherBundle",
]
