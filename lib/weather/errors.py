"""
Weather Error Taxonomy

Every failure is raised as a WeatherError subclass at the point where it is
first observed (transport call, HTTP status check, JSON parse or domain
validation). Callers record the error as-is and never downgrade its kind.
"""

import datetime
import email.utils
import logging
import math
from enum import StrEnum
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


class ErrorKind(StrEnum):
    NETWORK = "network"
    HTTP = "http"
    CONTRACT = "contract"
    RATE_LIMIT = "rate_limit"
    CONFIG = "config"
    UNKNOWN = "unknown"


class WeatherError(Exception):
    """Base exception class for all weather errors

    Attributes:
        kind: Error kind from the closed taxonomy
        message: Human-readable error message
        statusCode: HTTP status code (if available)
        retryAfterMs: Provider retry hint in milliseconds (if available)
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        statusCode: Optional[int] = None,
        retryAfterMs: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.statusCode = statusCode
        self.retryAfterMs = retryAfterMs

    @property
    def isRetryable(self) -> bool:
        """Whether a collaborator may retry with backoff without operator action"""
        return self.kind in (ErrorKind.NETWORK, ErrorKind.RATE_LIMIT)

    def __str__(self) -> str:
        if self.statusCode is not None:
            return f"{self.message} (kind: {self.kind}, status: {self.statusCode})"
        return f"{self.message} (kind: {self.kind})"


class NetworkError(WeatherError):
    """Transport-level failure: DNS, connection refused, timeout.

    Potentially transient, safe to retry with backoff.
    """

    kind = ErrorKind.NETWORK


class HttpError(WeatherError):
    """Unexpected non-2xx response from the provider"""

    kind = ErrorKind.HTTP


class ContractError(WeatherError):
    """Provider payload violates the expected schema.

    Not retryable: indicates provider drift or a bug.
    """

    kind = ErrorKind.CONTRACT


class RateLimitError(WeatherError):
    """Provider throttling. Callers should back off at least retryAfterMs."""

    kind = ErrorKind.RATE_LIMIT


class ConfigurationError(WeatherError):
    """Missing or invalid credential, or missing provider entitlement"""

    kind = ErrorKind.CONFIG


class UnknownWeatherError(WeatherError):
    kind = ErrorKind.UNKNOWN


def parseRetryAfter(value: Optional[str], now: Optional[datetime.datetime] = None) -> Optional[int]:
    """
    Parse a Retry-After header value into milliseconds

    Args:
        value: Header value, either delay-seconds ("60") or an HTTP-date
        now: Reference time for HTTP-date values (default: current UTC time)

    Returns:
        Delay in milliseconds (never negative) or None if absent/unparseable
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        if not math.isfinite(seconds):
            logger.warning(f"Non-finite Retry-After header: {value}")
            return None
        return max(0, int(seconds * 1000))

    try:
        retryAt = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.warning(f"Unparseable Retry-After header: {value}")
        return None

    if retryAt.tzinfo is None:
        retryAt = retryAt.replace(tzinfo=datetime.timezone.utc)
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    return max(0, int((retryAt - now).total_seconds() * 1000))


def parseHttpError(statusCode: int, headers: Optional[Mapping[str, str]] = None) -> WeatherError:
    """Map a non-2xx HTTP response to the matching WeatherError.

    Args:
        statusCode: HTTP status code
        headers: Response headers (case-insensitive mapping preferred)

    Returns:
        RateLimitError for 429, ConfigurationError for 401/403,
        HttpError for everything else
    """
    headers = headers or {}

    if statusCode == 429:
        retryAfterMs = parseRetryAfter(headers.get("Retry-After"))
        return RateLimitError(
            f"OpenWeatherMap rate limit exceeded: {statusCode}",
            statusCode=statusCode,
            retryAfterMs=retryAfterMs,
        )
    elif statusCode in (401, 403):
        return ConfigurationError(
            f"OpenWeatherMap rejected the API key or subscription: {statusCode}",
            statusCode=statusCode,
        )

    return HttpError(f"OpenWeatherMap HTTP error: {statusCode}", statusCode=statusCode)
