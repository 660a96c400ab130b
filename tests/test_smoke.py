"""Smoke tests for the offline environmental calculators."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
HUB_SRC = ROOT / "apps" / "hub" / "src"
if str(HUB_SRC) not in sys.path:
    sys.path.append(str(HUB_SRC))

from services.location_key import Coordinates, parse_location_key, to_location_key  # noqa: E402
from services.lunar import calculate_lunar_data  # noqa: E402
from services.temporal import calculate_temporal_data  # noqa: E402


def test_calculators_ranges() -> None:
    now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    coords = Coordinates(latitude=47.61, longitude=-122.33)

    lunar = calculate_lunar_data(now)
    temporal = calculate_temporal_data(now, coords)

    assert 0.0 <= lunar.illumination <= 1.0
    assert 363_400 <= lunar.distance_km <= 405_400
    assert 0.0 <= lunar.age_days < 29.6
    assert 0 <= temporal.days_since_solstice <= 183
    assert 0.0 <= temporal.day_length_hours <= 24.0
    assert parse_location_key(to_location_key(coords)) == coords
