"""Coarse location keys for sharing cached environmental data.

Both axes are rounded to two decimal places (roughly 1.1 km), so requests made
from anywhere inside the same rounding cell resolve to the same key and reuse
each other's cached history. The cache is therefore not fully location
accurate: two users a few hundred metres apart read the same rows.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

KEY_PRECISION = 2
_SCALE = 10**KEY_PRECISION


class InvalidCoordinates(ValueError):
    """Raised when latitude/longitude are non-numeric or out of range."""


class MalformedLocationKey(ValueError):
    """Raised when a location key does not hold exactly two numeric fields."""


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        for name, value, limit in (("latitude", self.latitude, 90.0), ("longitude", self.longitude, 180.0)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidCoordinates(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value) or abs(value) > limit:
                raise InvalidCoordinates(f"{name} {value!r} outside [-{limit:g}, {limit:g}]")


def _round_axis(value: float) -> float:
    # Half-up rounding keeps the cell boundaries stable across platforms.
    rounded = math.floor(value * _SCALE + 0.5) / _SCALE
    return rounded + 0.0  # normalizes -0.0


def _format_axis(value: float) -> str:
    text = f"{value:.{KEY_PRECISION}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def to_location_key(coords: Coordinates) -> str:
    lat = _round_axis(coords.latitude)
    lon = _round_axis(coords.longitude)
    return f"{_format_axis(lat)},{_format_axis(lon)}"


def parse_location_key(key: str) -> Coordinates:
    if not isinstance(key, str):
        raise MalformedLocationKey(f"Location key must be a string, got {type(key).__name__}")
    parts = key.split(",")
    if len(parts) != 2:
        raise MalformedLocationKey(f"Location key {key!r} must contain exactly two fields")
    try:
        lat, lon = (float(part.strip()) for part in parts)
    except ValueError as exc:
        raise MalformedLocationKey(f"Location key {key!r} has non-numeric fields") from exc
    try:
        return Coordinates(latitude=lat, longitude=lon)
    except InvalidCoordinates as exc:
        raise MalformedLocationKey(f"Location key {key!r} is out of range") from exc
