"""
Contract Validator & Normalizer

Pure functions converting raw OpenWeatherMap One Call payloads into domain
entities. A payload that cannot produce an entity raises ContractError naming
the first violated field; a payload that is usable but incomplete produces an
entity carrying DataQuality flags.

No network or cache awareness here: everything is synchronous.
"""

import datetime
import hashlib
import logging
import math
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .aggregator import aggregateDaily, downsample
from .classifier import classify, conditionLabel
from .errors import ContractError
from .location import LOCATION_KEY_PRECISION
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
    ProviderMetadata,
    WeatherAlert,
    WeatherBundle,
)
from .units import UnitSystem, probabilityToPercent, toCelsius, toKmh

logger = logging.getLogger(__name__)

PROVIDER_NAME = "openweathermap"
PROVIDER_VERSION = "3.0"

# Plausibility bounds: protect against corrupted payloads, not unit bugs
MIN_REASONABLE_TEMPERATURE_C = -90.0
MAX_REASONABLE_TEMPERATURE_C = 60.0

FINE_STEP_HOURS = 3
ALERT_SLUG_MAX_LENGTH = 40

CURRENT_OPTIONAL_FIELDS = ("feels_like", "humidity", "pressure", "wind_speed")


# Field helpers


def _isNumber(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _optionalNumber(block: Mapping[str, Any], field: str) -> Optional[float]:
    value = block.get(field)
    return float(value) if _isNumber(value) else None


def _fromUnix(timestamp: Any) -> Optional[datetime.datetime]:
    if not _isNumber(timestamp):
        return None
    try:
        return datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _requireObject(raw: Any, field: str = "payload") -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise ContractError(f"Invalid payload: expected object for '{field}', got {type(raw).__name__}")
    return raw


def _requireNumber(block: Mapping[str, Any], field: str, path: str) -> float:
    value = block.get(field)
    if not _isNumber(value):
        raise ContractError(f"Invalid payload: missing or invalid field '{path}'")
    return float(value)


def _isPlausibleTemperature(celsius: float) -> bool:
    return MIN_REASONABLE_TEMPERATURE_C <= celsius <= MAX_REASONABLE_TEMPERATURE_C


def _primaryWeather(block: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    weatherList = block.get("weather")
    if isinstance(weatherList, list) and weatherList and isinstance(weatherList[0], Mapping):
        return weatherList[0]
    return None


def _condition(block: Mapping[str, Any]) -> Tuple[ConditionCode, str]:
    primary = _primaryWeather(block)
    if primary is None:
        return ConditionCode.UNKNOWN, "Unknown"
    return (
        classify(primary.get("id"), primary.get("main") or primary.get("description")),
        conditionLabel(primary.get("description"), primary.get("main")),
    )


def _buildLocation(requested: Location, payload: Mapping[str, Any]) -> Location:
    lat = _requireNumber(payload, "lat", "lat")
    lon = _requireNumber(payload, "lon", "lon")
    timezone = payload.get("timezone")
    return Location(
        lat=lat,
        lon=lon,
        name=requested.name,
        countryCode=requested.countryCode,
        timezone=timezone if isinstance(timezone, str) and timezone else requested.timezone,
        id=requested.id,
    )


def buildProviderMetadata(fetchedAt: Optional[datetime.datetime] = None) -> ProviderMetadata:
    return ProviderMetadata(
        providerName=PROVIDER_NAME,
        providerVersion=PROVIDER_VERSION,
        fetchedAt=fetchedAt if fetchedAt is not None else datetime.datetime.now(datetime.timezone.utc),
    )


# Current conditions


def normalizeCurrent(
    raw: Any,
    requestedLocation: Location,
    units: UnitSystem = UnitSystem.METRIC,
    fetchedAt: Optional[datetime.datetime] = None,
) -> CurrentConditions:
    """
    Validate and convert the "current" block of a One Call payload

    Args:
        raw: Raw provider payload (whole One Call response)
        requestedLocation: Location the caller asked for
        units: Unit system the payload was requested in
        fetchedAt: Fetch time for provider metadata (default: now)

    Returns:
        CurrentConditions with temperatures in Celsius and wind in km/h

    Raises:
        ContractError: payload is not an object, coordinates/timestamp/temperature
            are missing or invalid, or temperature is implausible
    """
    payload = _requireObject(raw)
    location = _buildLocation(requestedLocation, payload)
    current = _requireObject(payload.get("current"), "current")

    observedAt = _fromUnix(current.get("dt"))
    if observedAt is None:
        raise ContractError("Invalid payload: missing or invalid field 'current.dt'")
    temperature = toCelsius(_requireNumber(current, "temp", "current.temp"), units)
    if not _isPlausibleTemperature(temperature):
        raise ContractError(f"Invalid payload: field 'current.temp' outside plausible range: {temperature:.1f}C")

    flags: List[DataQualityFlag] = []
    notes: List[str] = []

    missingOptional = [field for field in CURRENT_OPTIONAL_FIELDS if not _isNumber(current.get(field))]
    if missingOptional:
        flags.append(DataQualityFlag.MISSING_OPTIONAL)
        notes.append(f"missing {', '.join(missingOptional)}")

    if _primaryWeather(current) is None:
        flags.append(DataQualityFlag.PARTIAL)
        notes.append("missing weather condition")

    percentages: Dict[str, Optional[float]] = {}
    for field in ("humidity", "clouds"):
        value = _optionalNumber(current, field)
        if value is not None and not 0 <= value <= 100:
            if DataQualityFlag.OUT_OF_RANGE not in flags:
                flags.append(DataQualityFlag.OUT_OF_RANGE)
            notes.append(f"{field} out of range: {value}")
            value = None
        percentages[field] = value

    feelsLike = _optionalNumber(current, "feels_like")
    windSpeed = _optionalNumber(current, "wind_speed")
    conditionCode, label = _condition(current)

    precipitation: Optional[float] = None
    for field in ("rain", "snow"):
        block = current.get(field)
        if isinstance(block, Mapping) and _isNumber(block.get("1h")):
            precipitation = float(block["1h"])
            break

    return CurrentConditions(
        location=location,
        observedAt=observedAt,
        temperature=temperature,
        conditionCode=conditionCode,
        conditionLabel=label,
        providerMetadata=buildProviderMetadata(fetchedAt),
        feelsLike=toCelsius(feelsLike, units) if feelsLike is not None else None,
        humidity=percentages["humidity"],
        pressure=_optionalNumber(current, "pressure"),
        windSpeed=toKmh(windSpeed, units) if windSpeed is not None else None,
        windDirection=_optionalNumber(current, "wind_deg"),
        visibility=_optionalNumber(current, "visibility"),
        cloudCover=percentages["clouds"],
        precipitationLastHour=precipitation,
        dataQuality=DataQuality(flags=tuple(flags), message="; ".join(notes)) if flags else None,
    )


# Forecast


def _mapHourlyEntry(entry: Mapping[str, Any], units: UnitSystem) -> Optional[ForecastSlice]:
    timestamp = _fromUnix(entry.get("dt"))
    if timestamp is None or not _isNumber(entry.get("temp")):
        return None
    temperature = toCelsius(float(entry["temp"]), units)
    if not _isPlausibleTemperature(temperature):
        return None

    feelsLike = _optionalNumber(entry, "feels_like")
    windSpeed = _optionalNumber(entry, "wind_speed")
    pop = _optionalNumber(entry, "pop")
    conditionCode, label = _condition(entry)

    return ForecastSlice(
        timestamp=timestamp,
        temperature=temperature,
        conditionCode=conditionCode,
        conditionLabel=label,
        feelsLike=toCelsius(feelsLike, units) if feelsLike is not None else None,
        precipitationProbability=probabilityToPercent(pop) if pop is not None else None,
        windSpeed=toKmh(windSpeed, units) if windSpeed is not None else None,
        windDirection=_optionalNumber(entry, "wind_deg"),
    )


def _mapDailyEntry(entry: Mapping[str, Any], units: UnitSystem) -> Optional[ForecastSlice]:
    temp = entry.get("temp")
    timestamp = _fromUnix(entry.get("dt"))
    if timestamp is None or not isinstance(temp, Mapping) or not _isNumber(temp.get("day")):
        return None
    temperature = toCelsius(float(temp["day"]), units)
    if not _isPlausibleTemperature(temperature):
        return None

    minTemp = _optionalNumber(temp, "min")
    maxTemp = _optionalNumber(temp, "max")
    feelsLikeBlock = entry.get("feels_like")
    feelsLike = _optionalNumber(feelsLikeBlock, "day") if isinstance(feelsLikeBlock, Mapping) else None
    windSpeed = _optionalNumber(entry, "wind_speed")
    pop = _optionalNumber(entry, "pop")
    conditionCode, label = _condition(entry)

    return ForecastSlice(
        timestamp=timestamp,
        temperature=temperature,
        conditionCode=conditionCode,
        conditionLabel=label,
        feelsLike=toCelsius(feelsLike, units) if feelsLike is not None else None,
        precipitationProbability=probabilityToPercent(pop) if pop is not None else None,
        windSpeed=toKmh(windSpeed, units) if windSpeed is not None else None,
        windDirection=_optionalNumber(entry, "wind_deg"),
        minTemperature=toCelsius(minTemp, units) if minTemp is not None else None,
        maxTemperature=toCelsius(maxTemp, units) if maxTemp is not None else None,
    )


def _mapSeries(
    entries: Any,
    mapper: Callable[[Mapping[str, Any], UnitSystem], Optional[ForecastSlice]],
    units: UnitSystem,
    field: str,
) -> List[ForecastSlice]:
    """Map usable entries, sorted by timestamp with duplicates dropped"""
    if entries is None:
        return []
    if not isinstance(entries, list):
        logger.warning(f"Ignoring '{field}': expected list, got {type(entries).__name__}")
        return []

    slices = [s for s in (mapper(e, units) for e in entries if isinstance(e, Mapping)) if s is not None]
    if len(slices) < len(entries):
        logger.debug(f"Dropped {len(entries) - len(slices)} unusable '{field}' entries")

    slices.sort(key=lambda s: s.timestamp)
    result: List[ForecastSlice] = []
    for forecastSlice in slices:
        if result and result[-1].timestamp == forecastSlice.timestamp:
            continue
        result.append(forecastSlice)
    return result


def normalizeForecast(
    raw: Any,
    requestedLocation: Location,
    units: UnitSystem = UnitSystem.METRIC,
    fetchedAt: Optional[datetime.datetime] = None,
) -> List[ForecastTimeline]:
    """
    Build forecast timelines from "hourly" and "daily" series

    Hourly entries are downsampled to 3-hour steps for the fine timeline.
    When the payload has no usable daily series, the daily timeline is
    aggregated from all usable hourly entries. Missing series produce fewer
    timelines, not an error.

    Returns:
        Up to two timelines: fine first, then daily

    Raises:
        ContractError: payload is not an object or coordinates are invalid
    """
    payload = _requireObject(raw)
    location = _buildLocation(requestedLocation, payload)
    metadata = buildProviderMetadata(fetchedAt)

    hourlySlices = _mapSeries(payload.get("hourly"), _mapHourlyEntry, units, "hourly")
    dailySlices = _mapSeries(payload.get("daily"), _mapDailyEntry, units, "daily")
    dailyAggregated = not dailySlices
    if dailyAggregated:
        dailySlices = aggregateDaily(hourlySlices)

    timelines: List[ForecastTimeline] = []
    fineSlices = downsample(hourlySlices, FINE_STEP_HOURS)
    if fineSlices:
        timelines.append(
            ForecastTimeline(
                location=location,
                granularity=ForecastGranularity.FINE,
                slices=tuple(fineSlices),
                providerMetadata=metadata,
            )
        )
    if dailySlices:
        timelines.append(
            ForecastTimeline(
                location=location,
                granularity=ForecastGranularity.DAILY,
                slices=tuple(dailySlices),
                providerMetadata=metadata,
                aggregated=dailyAggregated,
            )
        )

    return timelines


# Alerts


def slugify(value: str) -> str:
    """Lowercase ASCII slug, at most ALERT_SLUG_MAX_LENGTH chars"""
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug[:ALERT_SLUG_MAX_LENGTH]


def _normalizeString(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _alertTags(entry: Mapping[str, Any]) -> Tuple[str, ...]:
    tags = entry.get("tags")
    if not isinstance(tags, list):
        return ()
    return tuple(tag.strip() for tag in tags if isinstance(tag, str) and tag.strip())


def buildAlertId(lat: float, lon: float, entry: Mapping[str, Any], index: int) -> str:
    """
    Deterministic alert id from rounded coordinates, start time and title

    Repeated fetches of the same underlying alert produce the same id.
    Format: "owm-alert:<lat*1000>:<lon*1000>:<start|idx-N>:<title-slug>"
    """
    title = _normalizeString(entry.get("event")) or "weather-alert"
    titleSlug = slugify(title)
    if not titleSlug:
        # Non-latin titles: stable digest instead of an empty slug
        titleSlug = hashlib.sha1(title.encode("utf-8")).hexdigest()[:12]

    start = entry.get("start")
    startPart = str(int(start)) if _isNumber(start) else f"idx-{index}"

    scale = 10**LOCATION_KEY_PRECISION
    latPart = round(lat * scale)
    lonPart = round(lon * scale)

    return f"owm-alert:{latPart}:{lonPart}:{startPart}:{titleSlug}"


def mapAlertSeverity(entry: Mapping[str, Any]) -> AlertSeverity:
    tags = [tag.lower() for tag in _alertTags(entry)]
    title = _normalizeString(entry.get("event")).lower()
    description = _normalizeString(entry.get("description")).lower()

    if "extreme" in tags or "red" in title or "red warning" in description:
        return AlertSeverity.EXTREME
    if "severe" in tags or "warning" in title or "warning" in description:
        return AlertSeverity.SEVERE
    if "moderate" in tags or "watch" in title:
        return AlertSeverity.MODERATE
    if "minor" in tags or "advisory" in tags or "advisory" in title:
        return AlertSeverity.MINOR
    return AlertSeverity.UNKNOWN


# Order matters: first match wins
ALERT_TYPE_KEYWORDS: List[Tuple[Tuple[str, ...], AlertType]] = [
    (("wind", "gale", "hurricane", "tornado"), AlertType.WIND),
    (("storm", "thunder"), AlertType.STORM),
    (("flood",), AlertType.FLOOD),
    (("rain",), AlertType.RAIN),
    (("snow", "ice", "blizzard"), AlertType.SNOW),
    (("heat",), AlertType.HEATWAVE),
    (("cold", "frost", "freeze"), AlertType.COLDWAVE),
    (("fog",), AlertType.FOG),
]


def inferAlertType(entry: Mapping[str, Any]) -> AlertType:
    haystack = " ".join(
        [
            _normalizeString(entry.get("event")),
            _normalizeString(entry.get("description")),
            " ".join(_alertTags(entry)),
        ]
    ).lower()

    for keywords, alertType in ALERT_TYPE_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return alertType
    return AlertType.OTHER


def _alertDataQuality(entry: Mapping[str, Any]) -> Optional[DataQuality]:
    flags: List[DataQualityFlag] = []
    if not _normalizeString(entry.get("event")):
        flags.append(DataQualityFlag.MISSING_REQUIRED)
    if not _normalizeString(entry.get("description")):
        flags.append(DataQualityFlag.MISSING_OPTIONAL)
    if not _isNumber(entry.get("start")) or not _isNumber(entry.get("end")):
        flags.append(DataQualityFlag.PARTIAL)

    if not flags:
        return None
    return DataQuality(flags=tuple(flags), message="Alert has missing or partial fields from provider payload")


def normalizeAlerts(
    raw: Any,
    requestedLocation: Location,
    fetchedAt: Optional[datetime.datetime] = None,
) -> List[WeatherAlert]:
    """
    Convert the "alerts" list of a One Call payload

    A payload without alerts yields an empty list. Entries that are not
    objects are skipped; incomplete entries are kept with DataQuality flags.

    Raises:
        ContractError: payload is not an object or coordinates are invalid
    """
    payload = _requireObject(raw)
    location = _buildLocation(requestedLocation, payload)

    entries = payload.get("alerts")
    if entries is None:
        return []
    if not isinstance(entries, list):
        logger.warning(f"Ignoring 'alerts': expected list, got {type(entries).__name__}")
        return []

    metadata = buildProviderMetadata(fetchedAt)
    alerts: List[WeatherAlert] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            logger.debug(f"Skipping alert #{index}: expected object, got {type(entry).__name__}")
            continue

        source = _normalizeString(entry.get("sender_name"))
        alerts.append(
            WeatherAlert(
                id=buildAlertId(location.lat, location.lon, entry, index),
                alertType=inferAlertType(entry),
                severity=mapAlertSeverity(entry),
                title=_normalizeString(entry.get("event")) or "Weather alert",
                description=_normalizeString(entry.get("description")),
                location=location,
                startsAt=_fromUnix(entry.get("start")),
                endsAt=_fromUnix(entry.get("end")),
                source=source or None,
                tags=_alertTags(entry),
                providerMetadata=metadata,
                dataQuality=_alertDataQuality(entry),
            )
        )

    return alerts


def normalizeBundle(
    raw: Any,
    requestedLocation: Location,
    units: UnitSystem = UnitSystem.METRIC,
    fetchedAt: Optional[datetime.datetime] = None,
) -> WeatherBundle:
    """Normalize current, forecast and alerts of one payload with shared metadata"""
    metadata = buildProviderMetadata(fetchedAt)
    return WeatherBundle(
        current=normalizeCurrent(raw, requestedLocation, units, metadata.fetchedAt),
        forecastTimelines=tuple(normalizeForecast(raw, requestedLocation, units, metadata.fetchedAt)),
        alerts=tuple(normalizeAlerts(raw, requestedLocation, metadata.fetchedAt)),
        providerMetadata=metadata,
    )


def countSeries(raw: Any, field: str) -> int:
    """Number of raw entries in a payload series, 0 when absent or malformed"""
    if not isinstance(raw, Mapping):
        return 0
    entries = raw.get(field)
    return len(entries) if isinstance(entries, list) else 0

