"""
OpenWeatherMap Async Client

This module provides the OpenWeatherMapClient class fetching raw One Call 3.0
bundles (current conditions, hourly/daily forecast and alerts in a single
request). It has no domain knowledge: payloads are returned as parsed JSON and
failures are raised as typed WeatherError subclasses.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from lib.weather.errors import ConfigurationError, ContractError, NetworkError, parseHttpError
from lib.weather.models import Location
from lib.weather.units import UnitSystem

from .models import OneCallResponse

logger = logging.getLogger(__name__)


class OpenWeatherMapClient:
    """
    Async client for the OpenWeatherMap One Call API

    Creates a new HTTP session for each request to support proper concurrent requests.
    Never retries: retry policy belongs to the caller.

    Example usage:
        client = OpenWeatherMapClient(
            apiKey="your_key",
            units="metric",
            language="en",
        )

        payload = await client.fetchBundle(Location(lat=55.7558, lon=37.6173))
    """

    ONE_CALL_API = "https://api.openweathermap.org/data/3.0/onecall"
    DEFAULT_EXCLUDE = ("minutely",)

    def __init__(
        self,
        apiKey: str,
        units: UnitSystem = UnitSystem.METRIC,
        language: Optional[str] = None,
        requestTimeout: float = 10,
        baseUrl: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize OpenWeatherMap client

        Args:
            apiKey: OpenWeatherMap API key (opaque credential)
            units: Unit system requested from the provider
            language: Optional language for condition descriptions (e.g., "en", "ru")
            requestTimeout: HTTP request timeout (seconds)
            baseUrl: One Call endpoint override (default: ONE_CALL_API)
            transport: Optional httpx transport (used by tests to stub the network)
        """
        self.apiKey = apiKey
        self.units = UnitSystem(units)
        self.language = language
        self.requestTimeout = requestTimeout
        self.baseUrl = baseUrl or self.ONE_CALL_API
        self.transport = transport

    def buildParams(self, location: Location) -> Dict[str, Any]:
        """
        Build query parameters for a One Call request

        Required: lat, lon, appid, units. Optional: lang.
        """
        params: Dict[str, Any] = {
            "lat": location.lat,
            "lon": location.lon,
            "appid": self.apiKey,
            "units": str(self.units),
            "exclude": ",".join(self.DEFAULT_EXCLUDE),
        }
        if self.language:
            params["lang"] = self.language
        return params

    async def fetchBundle(self, location: Location) -> OneCallResponse:
        """
        Fetch current, forecast and alerts for a location in one request

        Args:
            location: Location to fetch weather for

        Returns:
            Parsed JSON response (not validated)

        Raises:
            ConfigurationError: API key is missing, or provider answered 401/403
            RateLimitError: provider answered 429 (retryAfterMs from Retry-After)
            HttpError: any other non-2xx response
            NetworkError: transport failure (DNS, connection, timeout)
            ContractError: 2xx response with a body that is not valid JSON
        """
        if not self.apiKey:
            raise ConfigurationError("OpenWeatherMap API key is not configured")

        return await self._makeRequest(self.baseUrl, self.buildParams(location))

    async def _makeRequest(self, url: str, params: Dict[str, Any]) -> Any:
        """
        Make HTTP request to OpenWeatherMap API

        Creates a new session for each request to support proper concurrent requests.

        Args:
            url: API endpoint URL
            params: Query parameters

        Returns:
            Parsed JSON response
        """
        safeParams = {k: ("***" if k == "appid" else v) for k, v in params.items()}
        logger.debug(f"Making request to {url} with params: {safeParams}")

        try:
            async with httpx.AsyncClient(timeout=self.requestTimeout, transport=self.transport) as session:
                response = await session.get(url, params=params)
        except httpx.TimeoutException as e:
            logger.error(f"Request timeout: {e}")
            raise NetworkError(f"Timeout while calling OpenWeatherMap: {e}") from e
        except httpx.RequestError as e:
            logger.error(f"Network error: {e}")
            raise NetworkError(f"Network error while calling OpenWeatherMap: {e}") from e

        if not response.is_success:
            error = parseHttpError(response.status_code, response.headers)
            logger.error(f"API request failed: {error}")
            raise error

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Failed to parse JSON response: {e}")
            raise ContractError(f"Invalid JSON from OpenWeatherMap: {e}") from e

        logger.debug(f"API request successful: {response.status_code}")
        return data
