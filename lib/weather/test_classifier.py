"""
Tests for the condition classifier
"""

import pytest

from lib.weather.classifier import classify, conditionLabel
from lib.weather.models import ConditionCode


class TestClassify:
    """Test suite for classify"""

    @pytest.mark.parametrize(
        "code,expected",
        [
            (200, ConditionCode.STORM),
            (232, ConditionCode.STORM),
            (301, ConditionCode.DRIZZLE),
            (501, ConditionCode.RAIN),
            (531, ConditionCode.RAIN),
            (601, ConditionCode.SNOW),
            (701, ConditionCode.FOG),
            (781, ConditionCode.FOG),
            (800, ConditionCode.CLEAR),
            (801, ConditionCode.CLOUDY),
            (804, ConditionCode.CLOUDY),
            (500.0, ConditionCode.RAIN),
        ],
    )
    def testNumericRanges(self, code, expected):
        """Test numeric code banding"""
        assert classify(code, "") == expected

    def testCodeWinsOverText(self):
        """Test numeric code is the primary signal"""
        assert classify(600, "Rain") == ConditionCode.SNOW

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Thunderstorm", ConditionCode.STORM),
            ("light rain", ConditionCode.RAIN),
            ("Snow", ConditionCode.SNOW),
            ("Drizzle", ConditionCode.DRIZZLE),
            ("Mist", ConditionCode.FOG),
            ("overcast clouds", ConditionCode.CLOUDY),
            ("Clear", ConditionCode.CLEAR),
        ],
    )
    def testTextFallback(self, text, expected):
        """Test textual fallback when code is absent"""
        assert classify(None, text) == expected

    def testUnrecognizedCodeFallsBackToText(self):
        """Test codes outside known ranges use text"""
        assert classify(999, "heavy rain") == ConditionCode.RAIN

    @pytest.mark.parametrize(
        "code,text",
        [
            (float("nan"), ""),
            (float("inf"), ""),
            (None, None),
            (999, ""),
            (100, "something odd"),
            ("501", ""),
            (True, ""),
            (500.5, ""),
            ({"id": 500}, 42),
        ],
    )
    def testUnknownNeverRaises(self, code, text):
        """Test unmapped input yields UNKNOWN instead of raising"""
        assert classify(code, text) == ConditionCode.UNKNOWN


class TestConditionLabel:
    """Test suite for conditionLabel"""

    def testCapitalizesDescription(self):
        assert conditionLabel("light rain", "Rain") == "Light rain"

    def testFallsBackToGroup(self):
        assert conditionLabel(None, "Rain") == "Rain"
        assert conditionLabel("   ", "Rain") == "Rain"

    def testUnknown(self):
        assert conditionLabel(None, None) == "Unknown"
