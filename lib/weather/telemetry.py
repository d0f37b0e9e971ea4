"""
Weather telemetry

Structured events emitted around provider calls. Sinks are pluggable and
injected at construction time:

    telemetry = WeatherTelemetry(LoggingTelemetrySink())
    service = WeatherService(client, telemetry=telemetry)

Locations are coarsened before reaching a sink so precise coordinates and
caller identifiers never leave the process through telemetry.
"""

import dataclasses
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from .errors import WeatherError
from .models import Location

logger = logging.getLogger(__name__)

TELEMETRY_COORDINATE_PRECISION = 2


class DataAspect(StrEnum):
    CURRENT = "current"
    FORECAST_HOURLY = "forecast_hourly"
    FORECAST_DAILY = "forecast_daily"
    ALERTS = "alerts"


@dataclass(frozen=True, slots=True)
class WeatherApiRequestEvent:
    provider: str
    operation: str
    location: Optional[Location]
    timestamp: float  # Unix timestamp (seconds)


@dataclass(frozen=True, slots=True)
class WeatherApiSuccessEvent:
    provider: str
    operation: str
    location: Optional[Location]
    timestamp: float
    durationMs: float


@dataclass(frozen=True, slots=True)
class WeatherApiErrorEvent:
    provider: str
    operation: str
    location: Optional[Location]
    timestamp: float
    durationMs: float
    error: WeatherError


@dataclass(frozen=True, slots=True)
class WeatherDataDegradedEvent:
    """Payload was usable but some aspect of it is missing or incomplete"""

    provider: str
    operation: str
    aspect: DataAspect
    reason: str
    hadInput: bool
    hasOutput: bool
    timestamp: float


class WeatherTelemetrySink:
    """Base sink: every hook is a no-op, override the ones you need"""

    def onApiRequest(self, event: WeatherApiRequestEvent) -> None:
        pass

    def onApiSuccess(self, event: WeatherApiSuccessEvent) -> None:
        pass

    def onApiError(self, event: WeatherApiErrorEvent) -> None:
        pass

    def onDataDegraded(self, event: WeatherDataDegradedEvent) -> None:
        pass


class NullTelemetrySink(WeatherTelemetrySink):
    """Sink that drops every event"""


class LoggingTelemetrySink(WeatherTelemetrySink):
    """Sink writing events to the standard logging system"""

    def __init__(self, loggerName: str = "weather.telemetry"):
        self.logger = logging.getLogger(loggerName)

    def onApiRequest(self, event: WeatherApiRequestEvent) -> None:
        self.logger.debug(f"[{event.provider}][request] {event.operation} location={event.location}")

    def onApiSuccess(self, event: WeatherApiSuccessEvent) -> None:
        self.logger.info(
            f"[{event.provider}][success] {event.operation} location={event.location} "
            f"duration={event.durationMs:.1f}ms"
        )

    def onApiError(self, event: WeatherApiErrorEvent) -> None:
        self.logger.warning(
            f"[{event.provider}][error] {event.operation} location={event.location} "
            f"duration={event.durationMs:.1f}ms error={event.error}"
        )

    def onDataDegraded(self, event: WeatherDataDegradedEvent) -> None:
        self.logger.info(
            f"[{event.provider}][degraded] {event.operation} aspect={event.aspect} reason={event.reason} "
            f"hadInput={event.hadInput} hasOutput={event.hasOutput}"
        )


def sanitizeLocation(location: Optional[Location]) -> Optional[Location]:
    """
    Coarsen location before it is sent to telemetry sinks

    Rounds coordinates to TELEMETRY_COORDINATE_PRECISION decimals and keeps
    only name and country code; id and timezone are dropped.
    """
    if location is None:
        return None
    return Location(
        lat=round(location.lat, TELEMETRY_COORDINATE_PRECISION),
        lon=round(location.lon, TELEMETRY_COORDINATE_PRECISION),
        name=location.name,
        countryCode=location.countryCode,
    )


class WeatherTelemetry:
    """
    Dispatcher between event producers and a sink

    Sink failures are logged and swallowed: telemetry must never break a fetch.
    """

    def __init__(self, sink: Optional[WeatherTelemetrySink] = None):
        self.sink: WeatherTelemetrySink = sink if sink is not None else NullTelemetrySink()

    def trackApiRequest(self, event: WeatherApiRequestEvent) -> None:
        event = dataclasses.replace(event, location=sanitizeLocation(event.location))
        try:
            self.sink.onApiRequest(event)
        except Exception as e:
            logger.warning(f"Telemetry sink failed on request event: {e}")

    def trackApiSuccess(self, event: WeatherApiSuccessEvent) -> None:
        event = dataclasses.replace(event, location=sanitizeLocation(event.location))
        try:
            self.sink.onApiSuccess(event)
        except Exception as e:
            logger.warning(f"Telemetry sink failed on success event: {e}")

    def trackApiError(self, event: WeatherApiErrorEvent) -> None:
        event = dataclasses.replace(event, location=sanitizeLocation(event.location))
        try:
            self.sink.onApiError(event)
        except Exception as e:
            logger.warning(f"Telemetry sink failed on error event: {e}")

    def trackDataDegraded(self, event: WeatherDataDegradedEvent) -> None:
        try:
            self.sink.onDataDegraded(event)
        except Exception as e:
            logger.warning(f"Telemetry sink failed on degraded event: {e}")


def createTelemetrySink(sinkType: str) -> WeatherTelemetrySink:
    """Create sink by config name ("logging" or "null")"""
    match sinkType:
        case "logging":
            return LoggingTelemetrySink()
        case "null" | "none" | "":
            return NullTelemetrySink()
        case _:
            raise ValueError(f"Unknown telemetry sink: {sinkType}")
