"""
Condition Classifier

Maps OpenWeatherMap condition codes and texts to ConditionCode.
See https://openweathermap.org/weather-conditions#Weather-Condition-Codes-2
"""

import math
from typing import Any, List, Optional, Tuple

from .models import ConditionCode

# (first code, last code inclusive, condition)
CODE_RANGES: List[Tuple[int, int, ConditionCode]] = [
    (200, 299, ConditionCode.STORM),
    (300, 399, ConditionCode.DRIZZLE),
    (500, 599, ConditionCode.RAIN),
    (600, 699, ConditionCode.SNOW),
    (700, 799, ConditionCode.FOG),
    (800, 800, ConditionCode.CLEAR),
    (801, 899, ConditionCode.CLOUDY),
]

# Order matters: first match wins
TEXT_KEYWORDS: List[Tuple[Tuple[str, ...], ConditionCode]] = [
    (("thunder", "storm"), ConditionCode.STORM),
    (("drizzle",), ConditionCode.DRIZZLE),
    (("rain", "shower"), ConditionCode.RAIN),
    (("snow", "sleet"), ConditionCode.SNOW),
    (("fog", "mist", "haze", "smoke"), ConditionCode.FOG),
    (("cloud", "overcast"), ConditionCode.CLOUDY),
    (("clear",), ConditionCode.CLEAR),
]


def _toCode(code: Any) -> Optional[int]:
    if isinstance(code, bool):
        return None
    if isinstance(code, int):
        return code
    if isinstance(code, float) and math.isfinite(code) and code.is_integer():
        return int(code)
    return None


def classify(code: Any, mainText: Any = "") -> ConditionCode:
    """
    Classify provider condition into ConditionCode

    Numeric code ranges are the primary signal, text is the fallback when the
    code is absent or outside every known range. Never raises.

    Args:
        code: Provider condition id (e.g., 501), may be None/NaN/garbage
        mainText: Provider condition group or description (e.g., "Rain")

    Returns:
        Matching ConditionCode, ConditionCode.UNKNOWN if nothing matches
    """
    numericCode = _toCode(code)
    if numericCode is not None:
        for first, last, condition in CODE_RANGES:
            if first <= numericCode <= last:
                return condition

    if isinstance(mainText, str) and mainText:
        normalized = mainText.lower()
        for keywords, condition in TEXT_KEYWORDS:
            if any(keyword in normalized for keyword in keywords):
                return condition

    return ConditionCode.UNKNOWN


def conditionLabel(description: Any, mainText: Any = "") -> str:
    """Human label: capitalized description, then group name, then "Unknown"."""
    for candidate in (description, mainText):
        if isinstance(candidate, str) and candidate.strip():
            label = candidate.strip()
            return label[0].upper() + label[1:]
    return "Unknown"
