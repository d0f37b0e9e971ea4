"""
Pytest configuration and common fixtures for weather client tests.

All fixtures follow camelCase naming convention.
"""

import logging
from typing import Generator

import pytest

from lib.weather.models import Location
from lib.weather.telemetry import WeatherTelemetry
from tests.fixtures.telemetry_mocks import RecordingSink
from tests.fixtures.weather_payloads import MOSCOW, createOneCallPayload

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def quietHttpLoggers() -> Generator[None, None, None]:
    """Keep httpx request logging out of captured output"""
    levels = {name: logging.getLogger(name).level for name in ("httpx", "httpcore")}
    for name in levels:
        logging.getLogger(name).setLevel(logging.WARNING)
    yield
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)


# ============================================================================
# Weather Fixtures
# ============================================================================


@pytest.fixture
def moscow() -> Location:
    return MOSCOW


@pytest.fixture
def oneCallPayload() -> dict:
    """Complete One Call payload, a fresh copy per test"""
    return createOneCallPayload()


@pytest.fixture
def recordingSink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def telemetry(recordingSink) -> WeatherTelemetry:
    """Telemetry dispatcher writing into recordingSink"""
    return WeatherTelemetry(recordingSink)
