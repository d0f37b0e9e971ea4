"""
Unit conversion

Every unit conversion between OpenWeatherMap payloads and the domain model
goes through this module. Domain units: Celsius, km/h, percent.

OpenWeatherMap unit systems (https://openweathermap.org/api/one-call-3#data):
    standard: Kelvin, m/s
    metric:   Celsius, m/s
    imperial: Fahrenheit, miles/hour
"""

from enum import StrEnum

MPS_TO_KMH = 3.6
MPH_TO_KMH = 1.609344
KELVIN_OFFSET = 273.15


class UnitSystem(StrEnum):
    STANDARD = "standard"
    METRIC = "metric"
    IMPERIAL = "imperial"


def toCelsius(value: float, units: UnitSystem = UnitSystem.METRIC) -> float:
    """Convert provider temperature to Celsius"""
    match units:
        case UnitSystem.STANDARD:
            return value - KELVIN_OFFSET
        case UnitSystem.IMPERIAL:
            return (value - 32.0) * 5.0 / 9.0
        case _:
            return value


def toKmh(value: float, units: UnitSystem = UnitSystem.METRIC) -> float:
    """Convert provider wind speed to km/h"""
    if units == UnitSystem.IMPERIAL:
        return value * MPH_TO_KMH
    return value * MPS_TO_KMH


def probabilityToPercent(value: float) -> float:
    """Convert provider probability (0..1) to percent clamped to 0..100"""
    return min(max(value * 100.0, 0.0), 100.0)
