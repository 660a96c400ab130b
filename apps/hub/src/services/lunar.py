"""Lunar phase utilities driven by the mean synodic month."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Final

from services.models import LunarData

SYNODIC_MONTH_DAYS: Final[float] = 29.530588853
SYNODIC_MONTH_SECONDS: Final[float] = SYNODIC_MONTH_DAYS * 86_400.0
# New moon of 2000-01-06 18:14 UTC, the usual epoch for mean-phase models.
REFERENCE_NEW_MOON: Final[datetime] = datetime(2000, 1, 6, 18, 14, tzinfo=timezone.utc)
AVERAGE_MOON_DISTANCE_KM: Final[float] = 384_400.0
DISTANCE_VARIATION_KM: Final[float] = 21_000.0

# Upper bound (exclusive) of each phase bucket; centred on multiples of 1/8.
PHASE_BREAKPOINTS: Final[tuple[tuple[float, str], ...]] = (
    (1 / 16, "new_moon"),
    (3 / 16, "waxing_crescent"),
    (5 / 16, "first_quarter"),
    (7 / 16, "waxing_gibbous"),
    (9 / 16, "full_moon"),
    (11 / 16, "waning_gibbous"),
    (13 / 16, "last_quarter"),
    (15 / 16, "waning_crescent"),
)

PHASE_NAMES: Final[dict[str, str]] = {
    "new_moon": "New Moon",
    "waxing_crescent": "Waxing Crescent",
    "first_quarter": "First Quarter",
    "waxing_gibbous": "Waxing Gibbous",
    "full_moon": "Full Moon",
    "waning_gibbous": "Waning Gibbous",
    "last_quarter": "Last Quarter",
    "waning_crescent": "Waning Crescent",
}


def _as_utc(when: datetime) -> datetime:
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def phase_fraction(when: datetime) -> float:
    """Return the position in the synodic cycle, 0 at new moon and 0.5 at full moon."""

    elapsed = (_as_utc(when) - REFERENCE_NEW_MOON).total_seconds()
    fraction = (elapsed % SYNODIC_MONTH_SECONDS) / SYNODIC_MONTH_SECONDS
    return fraction if fraction < 1.0 else 0.0


def phase_key(fraction: float) -> str:
    for upper, key in PHASE_BREAKPOINTS:
        if fraction < upper:
            return key
    return "new_moon"


def phase_name(when: datetime) -> str:
    return PHASE_NAMES[phase_key(phase_fraction(when))]


def illumination(fraction: float) -> float:
    return (1.0 - math.cos(2.0 * math.pi * fraction)) / 2.0


def calculate_lunar_data(when: datetime) -> LunarData:
    """Compute phase, illumination and an approximate Earth-Moon distance for ``when``.

    The distance uses a cosine model around the mean distance keyed to the
    phase, not a true orbital solution; the trend flips at full moon.
    """

    fraction = phase_fraction(when)
    key = phase_key(fraction)
    distance = AVERAGE_MOON_DISTANCE_KM + math.cos(fraction * 2.0 * math.pi) * DISTANCE_VARIATION_KM
    return LunarData(
        phase=key,
        phase_name=PHASE_NAMES[key],
        illumination=round(illumination(fraction), 2),
        distance_km=int(round(distance)),
        distance_trend="approaching" if fraction < 0.5 else "receding",
        age_days=round(fraction * SYNODIC_MONTH_DAYS, 1),
    )
