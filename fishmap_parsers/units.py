"""Unit, coordinate and sentinel conversions shared by the vendor decoders."""

import math
from datetime import datetime, timezone
from typing import Optional

FEET_TO_METERS = 0.3048
MPH_TO_MPS = 0.44704
# Raymarine stores both axes as signed 32-bit integers scaled to +/-180 degrees
MERCATOR_SCALE = 2147483648 / 180  # 2^31 / 180

MIN_PLAUSIBLE_CELSIUS = -50.0
MAX_PLAUSIBLE_CELSIUS = 50.0


def feet_to_meters(feet: float) -> float:
    return feet * FEET_TO_METERS


def mph_to_mps(mph: float) -> float:
    return mph * MPH_TO_MPS


def fahrenheit_to_celsius(fahrenheit: float) -> float:
    return (fahrenheit - 32) * 5 / 9


def mercator_to_degrees(value: int) -> float:
    """Convert a Raymarine mercator integer to decimal degrees."""
    return value / MERCATOR_SCALE


def valid_coordinate(lat, lon) -> bool:
    """True when lat/lon are finite numbers inside the WGS84 ranges."""
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def unix_to_datetime(seconds: int) -> Optional[datetime]:
    """
    Convert Unix epoch seconds to a UTC datetime.

    Zero is what devices write when no clock fix was available, so it maps
    to None rather than 1970-01-01.
    """
    if not seconds:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def finite_or_none(value: float) -> Optional[float]:
    """Drop NaN and infinities read from raw float32 fields."""
    if value is None or not math.isfinite(value):
        return None
    return value


def positive_or_none(value: float) -> Optional[float]:
    """Depth-style sentinel: keep only finite values above zero."""
    if value is None or not math.isfinite(value) or value <= 0:
        return None
    return value


def non_negative_or_none(value: float) -> Optional[float]:
    if value is None or not math.isfinite(value) or value < 0:
        return None
    return value


def celsius_or_none(celsius: float) -> Optional[float]:
    """Keep a Celsius reading only inside the (-50, 50) plausibility band."""
    if celsius is None or not math.isfinite(celsius):
        return None
    if MIN_PLAUSIBLE_CELSIUS < celsius < MAX_PLAUSIBLE_CELSIUS:
        return celsius
    return None


def fahrenheit_reading(fahrenheit: float) -> Optional[float]:
    """Humminbird writes 0 (or less) when the temperature probe is absent."""
    if fahrenheit is None or not math.isfinite(fahrenheit) or fahrenheit <= 0:
        return None
    return fahrenheit_to_celsius(fahrenheit)


def heading_or_none(degrees: float) -> Optional[float]:
    if degrees is None or not math.isfinite(degrees) or not 0 <= degrees < 360:
        return None
    return degrees
