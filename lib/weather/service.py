"""
Weather bundle service

Glues the provider client, the normalizer and telemetry together. The
resource cache only sees `fetchBundle(location) -> WeatherBundle` and either
gets a bundle or a WeatherError.
"""

import logging
import time
from typing import Any, Optional, Protocol

from .errors import UnknownWeatherError, WeatherError
from .models import ForecastGranularity, Location, WeatherBundle
from .normalizer import PROVIDER_NAME, countSeries, normalizeBundle
from .telemetry import (
    DataAspect,
    WeatherApiErrorEvent,
    WeatherApiRequestEvent,
    WeatherApiSuccessEvent,
    WeatherDataDegradedEvent,
    WeatherTelemetry,
)
from .units import UnitSystem

logger = logging.getLogger(__name__)


class RawBundleClient(Protocol):
    """Anything returning a raw One Call payload for a location

    An optional `units` attribute names the unit system of the payloads.
    """

    async def fetchBundle(self, location: Location) -> Any: ...


class WeatherService:
    """
    Fetches and normalizes one weather bundle per call

    Example usage:
        service = WeatherService(OpenWeatherMapClient(apiKey="..."), telemetry=WeatherTelemetry())
        bundle = await service.fetchBundle(Location(lat=52.52, lon=13.405))
    """

    OPERATION = "onecall"

    def __init__(
        self,
        client: RawBundleClient,
        telemetry: Optional[WeatherTelemetry] = None,
        units: Optional[UnitSystem] = None,
    ):
        """
        Args:
            client: Raw payload source, its `units` attribute (if any) tells
                which unit system the payloads are in
            telemetry: Event dispatcher (default: drops everything)
            units: Unit system of the payloads, only for clients without a
                `units` attribute (default: metric)

        Raises:
            ValueError: `units` disagrees with the unit system the client requests
        """
        clientUnits = getattr(client, "units", None)
        if clientUnits is not None and units is not None and UnitSystem(units) != UnitSystem(clientUnits):
            raise ValueError(f"Service units {units} do not match client units {clientUnits}")

        self.client = client
        self.telemetry = telemetry if telemetry is not None else WeatherTelemetry()
        self.units = UnitSystem(clientUnits or units or UnitSystem.METRIC)

    async def fetchBundle(self, location: Location) -> WeatherBundle:
        """
        Fetch a bundle for a location

        Raises:
            WeatherError: provider or contract failure, unexpected failures
                are wrapped into UnknownWeatherError
        """
        startedAt = time.perf_counter()
        self.telemetry.trackApiRequest(
            WeatherApiRequestEvent(
                provider=PROVIDER_NAME,
                operation=self.OPERATION,
                location=location,
                timestamp=time.time(),
            )
        )

        try:
            raw = await self.client.fetchBundle(location)
            bundle = normalizeBundle(raw, location, self.units)
        except WeatherError as e:
            self._trackError(location, startedAt, e)
            raise
        except Exception as e:
            logger.error(f"Unexpected error while fetching weather for {location}: {e}")
            logger.exception(e)
            error = UnknownWeatherError(f"Unexpected error while fetching weather: {e}")
            self._trackError(location, startedAt, error)
            raise error from e

        self.telemetry.trackApiSuccess(
            WeatherApiSuccessEvent(
                provider=PROVIDER_NAME,
                operation=self.OPERATION,
                location=location,
                timestamp=time.time(),
                durationMs=(time.perf_counter() - startedAt) * 1000,
            )
        )
        self._reportDegradation(raw, bundle)
        return bundle

    def _trackError(self, location: Location, startedAt: float, error: WeatherError) -> None:
        self.telemetry.trackApiError(
            WeatherApiErrorEvent(
                provider=PROVIDER_NAME,
                operation=self.OPERATION,
                location=location,
                timestamp=time.time(),
                durationMs=(time.perf_counter() - startedAt) * 1000,
                error=error,
            )
        )

    def _degraded(self, aspect: DataAspect, reason: str, hadInput: bool, hasOutput: bool) -> None:
        self.telemetry.trackDataDegraded(
            WeatherDataDegradedEvent(
                provider=PROVIDER_NAME,
                operation=self.OPERATION,
                aspect=aspect,
                reason=reason,
                hadInput=hadInput,
                hasOutput=hasOutput,
                timestamp=time.time(),
            )
        )

    def _reportDegradation(self, raw: Any, bundle: WeatherBundle) -> None:
        """Emit degraded-data events for a usable but incomplete bundle"""
        quality = bundle.current.dataQuality
        if quality is not None:
            self._degraded(DataAspect.CURRENT, quality.message or "incomplete current conditions", True, True)

        granularities = {timeline.granularity for timeline in bundle.forecastTimelines}
        daily = next((t for t in bundle.forecastTimelines if t.granularity == ForecastGranularity.DAILY), None)
        hourlyCount = countSeries(raw, "hourly")
        dailyCount = countSeries(raw, "daily")

        if hourlyCount == 0:
            self._degraded(DataAspect.FORECAST_HOURLY, "hourly series missing", False, False)
        elif ForecastGranularity.FINE not in granularities:
            self._degraded(DataAspect.FORECAST_HOURLY, "no usable hourly entries", True, False)

        if daily is None:
            self._degraded(DataAspect.FORECAST_DAILY, "daily forecast unavailable", dailyCount > 0, False)
        elif daily.aggregated:
            reason = "no usable daily entries" if dailyCount else "daily series missing"
            self._degraded(
                DataAspect.FORECAST_DAILY, f"{reason}, aggregated from hourly series", dailyCount > 0, True
            )

        partialAlerts = sum(1 for alert in bundle.alerts if alert.dataQuality is not None)
        if partialAlerts:
            self._degraded(DataAspect.ALERTS, f"{partialAlerts} alert(s) with missing or partial fields", True, True)
