"""
OpenWeatherMap Async Client Library

This module provides an async client for the OpenWeatherMap One Call 3.0 API.
It returns raw payloads; lib.weather turns them into domain entities.

Example usage:
    from lib.openweathermap import OpenWeatherMapClient
    from lib.weather import Location

    client = OpenWeatherMapClient(apiKey="your_api_key", units="metric", language="en")
    payload = await client.fetchBundle(Location(lat=55.7558, lon=37.6173))
    print(f"Temperature: {payload['current']['temp']}°C")
"""

from .client import OpenWeatherMapClient
from .models import AlertEntry, CurrentBlock, DailyEntry, HourlyEntry, OneCallResponse, WeatherCondition

__all__ = [
    "OpenWeatherMapClient",
    "OneCallResponse",
    "CurrentBlock",
    "HourlyEntry",
    "DailyEntry",
    "AlertEntry",
    "WeatherCondition",
]
