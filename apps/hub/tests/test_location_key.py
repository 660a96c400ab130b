from __future__ import annotations

import pytest

from services.location_key import (
    Coordinates,
    InvalidCoordinates,
    MalformedLocationKey,
    parse_location_key,
    to_location_key,
)


def test_key_for_san_francisco_round_trips_exactly() -> None:
    key = to_location_key(Coordinates(latitude=37.77, longitude=-122.42))
    assert key == "37.77,-122.42"
    parsed = parse_location_key(key)
    assert parsed == Coordinates(latitude=37.77, longitude=-122.42)


def test_nearby_points_share_a_cell() -> None:
    first = to_location_key(Coordinates(latitude=37.7712, longitude=-122.4189))
    second = to_location_key(Coordinates(latitude=37.7694, longitude=-122.4221))
    assert first == second == "37.77,-122.42"


@pytest.mark.parametrize(
    ("latitude", "longitude"),
    [
        (0.0, 0.0),
        (-33.8688, 151.2093),
        (64.1466, -21.9426),
        (89.999, 179.999),
        (-89.996, -179.996),
        (51.5007, -0.1246),
        (-0.004, 0.004),
    ],
)
def test_parse_reproduces_coordinates_within_rounding(latitude: float, longitude: float) -> None:
    coords = Coordinates(latitude=latitude, longitude=longitude)
    parsed = parse_location_key(to_location_key(coords))
    assert abs(parsed.latitude - latitude) <= 0.01
    assert abs(parsed.longitude - longitude) <= 0.01


def test_key_drops_trailing_zeros_and_negative_zero() -> None:
    assert to_location_key(Coordinates(latitude=40.7, longitude=-74.0)) == "40.7,-74"
    assert to_location_key(Coordinates(latitude=-0.001, longitude=0.0)) == "0,0"


@pytest.mark.parametrize("key", ["", "37.77", "37.77,-122.42,5", "abc,1.0", "1.0,", "nan,1", "95,10"])
def test_malformed_keys_raise(key: str) -> None:
    with pytest.raises(MalformedLocationKey):
        parse_location_key(key)


def test_malformed_key_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_location_key("north,south")


@pytest.mark.parametrize(
    ("latitude", "longitude"),
    [(91.0, 0.0), (0.0, 181.0), (float("nan"), 0.0), ("37.7", -122.4), (True, 0.0)],
)
def test_invalid_coordinates_rejected(latitude, longitude) -> None:
    with pytest.raises(InvalidCoordinates):
        Coordinates(latitude=latitude, longitude=longitude)
