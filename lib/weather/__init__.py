"""
Weather client core

Location-keyed cache of current conditions, forecasts and alerts backed by
the OpenWeatherMap One Call API.

Example usage:
    from lib.openweathermap import OpenWeatherMapClient
    from lib.weather import (
        Location,
        LoggingTelemetrySink,
        WeatherResourceCache,
        WeatherService,
        WeatherTelemetry,
        buildLocationKey,
    )

    service = WeatherService(
        OpenWeatherMapClient(apiKey="your_api_key"),
        telemetry=WeatherTelemetry(LoggingTelemetrySink()),
    )
    cache = WeatherResourceCache(service, ttl=300)

    location = Location(lat=52.52, lon=13.405, name="Berlin")
    await cache.ensureCurrent(location)

    current = cache.getCurrent(buildLocationKey(location))
    if current.data is not None:
        print(f"{current.data.temperature:.1f}°C, {current.data.conditionLabel}")
    if current.error is not None:
        print(f"Showing stale data: {current.error}")
"""

from .aggregator import aggregateDaily, downsample
from .classifier import classify, conditionLabel
from .errors import (
    ConfigurationError,
    ContractError,
    ErrorKind,
    HttpError,
    NetworkError,
    RateLimitError,
    UnknownWeatherError,
    WeatherError,
)
from .location import buildLocationKey
from .models import (
    AlertSeverity,
    AlertType,
    ConditionCode,
    CurrentConditions,
    DataQuality,
    DataQualityFlag,
    ForecastGranularity,
    ForecastSlice,
    ForecastTimeline,
    Location,
    LocationResources,
    ProviderMetadata,
    Resource,
    ResourceKind,
    ResourceStatus,
    WeatherAlert,
    WeatherBundle,
)
from .normalizer import normalizeAlerts, normalizeBundle, normalizeCurrent, normalizeForecast
from .service import WeatherService
from .store import WeatherBundleFetcher, WeatherResourceCache
from .telemetry import (
    LoggingTelemetrySink,
    NullTelemetrySink,
    WeatherTelemetry,
    WeatherTelemetrySink,
    createTelemetrySink,
)
from .units import UnitSystem

__all__ = [
    # Cache
    "WeatherResourceCache",
    "WeatherBundleFetcher",
    "WeatherService",
    "buildLocationKey",
    # Models
    "Location",
    "CurrentConditions",
    "ForecastSlice",
    "ForecastTimeline",
    "WeatherAlert",
    "WeatherBundle",
    "ProviderMetadata",
    "DataQuality",
    "DataQualityFlag",
    "ConditionCode",
    "ForecastGranularity",
    "AlertSeverity",
    "AlertType",
    "Resource",
    "ResourceKind",
    "ResourceStatus",
    "LocationResources",
    "UnitSystem",
    # Errors
    "ErrorKind",
    "WeatherError",
    "NetworkError",
    "HttpError",
    "ContractError",
    "RateLimitError",
    "ConfigurationError",
    "UnknownWeatherError",
    # Pure functions
    "normalizeCurrent",
    "normalizeForecast",
    "normalizeAlerts",
    "normalizeBundle",
    "classify",
    "conditionLabel",
    "aggregateDaily",
    "downsample",
    # Telemetry
    "WeatherTelemetry",
    "WeatherTelemetrySink",
    "NullTelemetrySink",
    "LoggingTelemetrySink",
    "createTelemetrySink",
]
