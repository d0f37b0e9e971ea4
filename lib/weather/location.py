"""
LocationKey derivation

A LocationKey identifies one cache entry. Coordinates are rounded to
LOCATION_KEY_PRECISION decimals, so nearby raw coordinates that round
identically share an entry. Ties round half away from zero on the exact
binary value of the float (0.0625 -> "0.063"), never to even.
"""

import math
from decimal import ROUND_HALF_UP, Decimal

from .models import Location

LOCATION_KEY_PRECISION = 3

_KEY_QUANTUM = Decimal(1).scaleb(-LOCATION_KEY_PRECISION)


def _formatCoordinate(value: float) -> str:
    if not math.isfinite(value):
        return str(value)
    rounded = Decimal(value).quantize(_KEY_QUANTUM, rounding=ROUND_HALF_UP)
    if rounded.is_zero():
        # -0.000 -> 0.000 so both sides of the meridian/equator collide
        rounded = abs(rounded)
    return f"{rounded:f}"


def buildLocationKey(location: Location) -> str:
    """
    Build canonical cache key for a location

    Args:
        location: Location to build key for

    Returns:
        Key in format "loc:<lat>,<lon>" or "loc:<lat>,<lon>:<id>"
        (e.g., "loc:55.756,37.617:moscow")
    """
    idPart = f":{location.id}" if location.id else ""
    return f"loc:{_formatCoordinate(location.lat)},{_formatCoordinate(location.lon)}{idPart}"
