"""
Domain models for the weather resource cache

Entities are frozen dataclasses: they are replaced wholesale on every
successful fetch and never mutated in place.
"""

import datetime
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Generic, Optional, Tuple, TypeVar

if TYPE_CHECKING:
    from .errors import WeatherError

T = TypeVar("T")


class ConditionCode(StrEnum):
    """Provider-agnostic weather condition"""

    CLEAR = "clear"
    CLOUDY = "cloudy"
    RAIN = "rain"
    SNOW = "snow"
    STORM = "storm"
    DRIZZLE = "drizzle"
    FOG = "fog"
    UNKNOWN = "unknown"


class DataQualityFlag(StrEnum):
    MISSING_REQUIRED = "MISSING_REQUIRED"
    MISSING_OPTIONAL = "MISSING_OPTIONAL"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    PARTIAL = "PARTIAL"


class ForecastGranularity(StrEnum):
    FINE = "fine"  # 3-hour steps
    DAILY = "daily"


class AlertSeverity(StrEnum):
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"
    EXTREME = "extreme"
    UNKNOWN = "unknown"


class AlertType(StrEnum):
    STORM = "storm"
    HEATWAVE = "heatwave"
    COLDWAVE = "coldwave"
    FLOOD = "flood"
    WIND = "wind"
    RAIN = "rain"
    SNOW = "snow"
    FOG = "fog"
    OTHER = "other"


class ResourceKind(StrEnum):
    """Resource slots kept per location"""

    CURRENT = "current"
    FORECAST = "forecast"
    ALERTS = "alerts"


class ResourceStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Location:
    """Geographic location requested by a collaborator"""

    lat: float
    lon: float
    name: Optional[str] = None
    countryCode: Optional[str] = None
    timezone: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ProviderMetadata:
    providerName: str
    providerVersion: Optional[str]
    fetchedAt: datetime.datetime


@dataclass(frozen=True, slots=True)
class DataQuality:
    """Flags describing a usable but incomplete provider payload"""

    flags: Tuple[DataQualityFlag, ...]
    message: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CurrentConditions:
    """Current weather at a location"""

    location: Location
    observedAt: datetime.datetime  # UTC
    temperature: float  # Celsius
    conditionCode: ConditionCode
    conditionLabel: str
    providerMetadata: ProviderMetadata
    feelsLike: Optional[float] = None  # Celsius
    humidity: Optional[float] = None  # %
    pressure: Optional[float] = None  # hPa
    windSpeed: Optional[float] = None  # km/h
    windDirection: Optional[float] = None  # degrees
    visibility: Optional[float] = None  # meters
    cloudCover: Optional[float] = None  # %
    precipitationLastHour: Optional[float] = None  # mm
    dataQuality: Optional[DataQuality] = None


@dataclass(frozen=True, slots=True)
class ForecastSlice:
    """Single point of a forecast timeline"""

    timestamp: datetime.datetime  # UTC
    temperature: float  # Celsius
    conditionCode: ConditionCode
    conditionLabel: str
    feelsLike: Optional[float] = None  # Celsius
    precipitationProbability: Optional[float] = None  # 0..100
    windSpeed: Optional[float] = None  # km/h
    windDirection: Optional[float] = None  # degrees
    minTemperature: Optional[float] = None  # Celsius, mainly daily
    maxTemperature: Optional[float] = None  # Celsius, mainly daily


@dataclass(frozen=True, slots=True)
class ForecastTimeline:
    """Ordered slices of a single granularity"""

    location: Location
    granularity: ForecastGranularity
    slices: Tuple[ForecastSlice, ...]
    providerMetadata: Optional[ProviderMetadata] = None
    # Built by aggregateDaily from finer slices instead of provider data
    aggregated: bool = False

    def __post_init__(self):
        for prev, cur in zip(self.slices, self.slices[1:]):
            if cur.timestamp <= prev.timestamp:
                raise ValueError(f"Forecast slices must be strictly ascending: {prev.timestamp} >= {cur.timestamp}")


@dataclass(frozen=True, slots=True)
class WeatherAlert:
    """Active weather alert"""

    id: str  # Deterministic, derived from provider fields
    alertType: AlertType
    severity: AlertSeverity
    title: str
    description: str
    location: Location
    startsAt: Optional[datetime.datetime] = None
    endsAt: Optional[datetime.datetime] = None
    source: Optional[str] = None
    tags: Tuple[str, ...] = ()
    providerMetadata: Optional[ProviderMetadata] = None
    dataQuality: Optional[DataQuality] = None


@dataclass(frozen=True, slots=True)
class WeatherBundle:
    """Everything delivered by one provider round trip"""

    current: CurrentConditions
    forecastTimelines: Tuple[ForecastTimeline, ...]
    alerts: Tuple[WeatherAlert, ...]
    providerMetadata: ProviderMetadata


@dataclass(frozen=True, slots=True)
class Resource(Generic[T]):
    """
    Cache slot for one resource kind at one location

    Invariants:
        - data from a prior success survives a later error
        - a slot that has shown data never goes back to LOADING; refreshes
          set isRefreshing instead
    """

    status: ResourceStatus = ResourceStatus.IDLE
    data: Optional[T] = None
    error: Optional["WeatherError"] = None
    lastUpdatedAt: Optional[float] = None  # Unix timestamp (seconds) of the last settled fetch
    isRefreshing: bool = False

    def hasData(self) -> bool:
        return self.data is not None


@dataclass(frozen=True, slots=True)
class LocationResources:
    """The current/forecast/alerts triple for one LocationKey"""

    current: Optional[Resource[CurrentConditions]] = None
    forecast: Optional[Resource[Tuple[ForecastTimeline, ...]]] = None
    alerts: Optional[Resource[Tuple[WeatherAlert, ...]]] = None
