"""
Raw payload models for the OpenWeatherMap One Call 3.0 API

These TypedDicts describe what the provider is documented to send. Nothing
here is trusted: every field may be missing or mistyped, and
lib.weather.normalizer validates payloads against this shape.
https://openweathermap.org/api/one-call-3#parameter
"""

import sys
from typing import Dict, List

if sys.version_info >= (3, 14):
    from typing import TypedDict
else:
    from typing_extensions import TypedDict


class WeatherCondition(TypedDict, total=False, closed=False):
    """Entry of the "weather" list"""

    # https://openweathermap.org/weather-conditions#Weather-Condition-Codes-2
    id: int  # Weather condition ID
    main: str  # Weather group (Rain, Snow, Clear, etc.)
    description: str  # Weather description
    icon: str  # Icon ID


class CurrentBlock(TypedDict, total=False, closed=False):
    """Current weather data"""

    dt: int  # Unix timestamp
    temp: float  # Temperature (depends on units)
    feels_like: float  # Feels like temperature (depends on units)

    pressure: int  # Atmospheric pressure (hPa)
    humidity: int  # Humidity percentage
    dew_point: float  # Dew point
    clouds: int  # Cloudiness percentage
    uvi: float  # UV index
    visibility: int  # Visibility (meters) max 10Km

    wind_deg: int  # Wind direction (degrees)
    wind_speed: float  # Wind speed (m/s for metric/standard, mph for imperial)
    wind_gust: float  # Wind gust

    rain: Dict[str, float]  # {"1h": mm}
    snow: Dict[str, float]  # {"1h": mm}

    sunrise: int  # Sunrise time (Unix timestamp)
    sunset: int  # Sunset time (Unix timestamp)

    weather: List[WeatherCondition]


class HourlyEntry(TypedDict, total=False, closed=False):
    """Hourly forecast entry (48 hours)"""

    dt: int  # Unix timestamp
    temp: float
    feels_like: float
    pressure: int
    humidity: int
    clouds: int
    visibility: int
    wind_speed: float
    wind_deg: int
    pop: float  # Probability of precipitation (0-1)
    weather: List[WeatherCondition]


class DailyTemperature(TypedDict, total=False, closed=False):
    day: float
    min: float
    max: float
    night: float
    eve: float
    morn: float


class DailyFeelsLike(TypedDict, total=False, closed=False):
    day: float
    night: float
    eve: float
    morn: float


class DailyEntry(TypedDict, total=False, closed=False):
    """Daily forecast entry (8 days)"""

    dt: int  # Unix timestamp
    summary: str  # Human-readable description of the weather conditions for the day
    temp: DailyTemperature
    feels_like: DailyFeelsLike
    pressure: int
    humidity: int
    clouds: int
    wind_speed: float
    wind_deg: int
    pop: float  # Probability of precipitation (0-1)
    weather: List[WeatherCondition]


class AlertEntry(TypedDict, total=False, closed=False):
    """National weather alert"""

    sender_name: str  # Name of the alert source
    event: str  # Alert event name
    start: int  # Start of the alert (Unix timestamp)
    end: int  # End of the alert (Unix timestamp)
    description: str  # Description of the alert
    tags: List[str]  # Type of severe weather


class OneCallResponse(TypedDict, total=False, closed=False):
    """Complete One Call 3.0 response"""

    lat: float  # Latitude
    lon: float  # Longitude
    timezone: str  # Timezone name
    timezone_offset: int  # Timezone offset in seconds
    current: CurrentBlock
    hourly: List[HourlyEntry]
    daily: List[DailyEntry]
    alerts: List[AlertEntry]
