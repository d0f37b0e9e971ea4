"""
Tests for weather telemetry
"""

import logging

import pytest

from lib.weather.errors import NetworkError
from lib.weather.models import Location
from lib.weather.telemetry import (
    DataAspect,
    LoggingTelemetrySink,
    NullTelemetrySink,
    WeatherApiErrorEvent,
    WeatherApiRequestEvent,
    WeatherApiSuccessEvent,
    WeatherDataDegradedEvent,
    WeatherTelemetry,
    WeatherTelemetrySink,
    createTelemetrySink,
    sanitizeLocation,
)
from tests.fixtures.telemetry_mocks import RecordingSink

PRECISE = Location(lat=55.755812, lon=37.617311, name="Moscow", countryCode="RU", timezone="Europe/Moscow", id="u42")


class FailingSink(WeatherTelemetrySink):
    def onApiRequest(self, event):
        raise RuntimeError("sink is broken")

    def onApiError(self, event):
        raise RuntimeError("sink is broken")

    def onDataDegraded(self, event):
        raise RuntimeError("sink is broken")


def requestEvent(location=PRECISE) -> WeatherApiRequestEvent:
    return WeatherApiRequestEvent(provider="openweathermap", operation="onecall", location=location, timestamp=1.0)


class TestSanitizeLocation:
    """Test suite for location coarsening"""

    def testRoundsAndDropsIdentifiers(self):
        sanitized = sanitizeLocation(PRECISE)

        assert sanitized == Location(lat=55.76, lon=37.62, name="Moscow", countryCode="RU")
        assert sanitized is not None
        assert sanitized.id is None
        assert sanitized.timezone is None

    def testNone(self):
        assert sanitizeLocation(None) is None


class TestWeatherTelemetry:
    """Test suite for the telemetry dispatcher"""

    def testDefaultSinkIsNull(self):
        telemetry = WeatherTelemetry()

        assert isinstance(telemetry.sink, NullTelemetrySink)
        telemetry.trackApiRequest(requestEvent())

    def testLocationsAreSanitized(self):
        sink = RecordingSink()
        telemetry = WeatherTelemetry(sink)

        telemetry.trackApiRequest(requestEvent())
        telemetry.trackApiSuccess(
            WeatherApiSuccessEvent(
                provider="openweathermap", operation="onecall", location=PRECISE, timestamp=2.0, durationMs=12.5
            )
        )

        assert len(sink.events) == 2
        assert all(event.location.id is None for event in sink.events)
        assert sink.events[0].location.lat == 55.76
        assert sink.events[1].durationMs == 12.5

    def testErrorEventKeepsError(self):
        sink = RecordingSink()
        error = NetworkError("down")

        WeatherTelemetry(sink).trackApiError(
            WeatherApiErrorEvent(
                provider="openweathermap",
                operation="onecall",
                location=PRECISE,
                timestamp=2.0,
                durationMs=3.0,
                error=error,
            )
        )

        assert sink.events[0].error is error

    def testSinkFailuresAreSwallowed(self, caplog):
        """Test that a broken sink never breaks the caller"""
        telemetry = WeatherTelemetry(FailingSink())

        with caplog.at_level(logging.WARNING, logger="lib.weather.telemetry"):
            telemetry.trackApiRequest(requestEvent())
            telemetry.trackApiError(
                WeatherApiErrorEvent(
                    provider="openweathermap",
                    operation="onecall",
                    location=None,
                    timestamp=2.0,
                    durationMs=3.0,
                    error=NetworkError("down"),
                )
            )
            telemetry.trackDataDegraded(
                WeatherDataDegradedEvent(
                    provider="openweathermap",
                    operation="onecall",
                    aspect=DataAspect.ALERTS,
                    reason="partial",
                    hadInput=True,
                    hasOutput=True,
                    timestamp=3.0,
                )
            )

        assert caplog.text.count("sink is broken") == 3


class TestLoggingTelemetrySink:
    """Test suite for the logging sink"""

    def testLogsEvents(self, caplog):
        telemetry = WeatherTelemetry(LoggingTelemetrySink())

        with caplog.at_level(logging.DEBUG, logger="weather.telemetry"):
            telemetry.trackApiRequest(requestEvent())
            telemetry.trackApiError(
                WeatherApiErrorEvent(
                    provider="openweathermap",
                    operation="onecall",
                    location=PRECISE,
                    timestamp=2.0,
                    durationMs=3.0,
                    error=NetworkError("down"),
                )
            )

        records = [r for r in caplog.records if r.name == "weather.telemetry"]
        assert [r.levelno for r in records] == [logging.DEBUG, logging.WARNING]
        assert "[openweathermap][error]" in records[1].getMessage()
        assert "u42" not in caplog.text


class TestCreateTelemetrySink:
    """Test suite for sink factory"""

    def testKnownSinks(self):
        assert isinstance(createTelemetrySink("logging"), LoggingTelemetrySink)
        assert isinstance(createTelemetrySink("null"), NullTelemetrySink)
        assert isinstance(createTelemetrySink(""), NullTelemetrySink)

    def testUnknownSink(self):
        with pytest.raises(ValueError):
            createTelemetrySink("statsd")
