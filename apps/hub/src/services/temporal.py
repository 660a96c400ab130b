"""Day-length and seasonal position utilities."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Final, Literal

from astral import LocationInfo
from astral.sun import elevation, noon, sunrise, sunset

from services.location_key import Coordinates
from services.models import TemporalData

logger = logging.getLogger("phantom.hub.temporal")

SUMMER_SOLSTICE: Final[tuple[int, int]] = (6, 21)
WINTER_SOLSTICE: Final[tuple[int, int]] = (12, 21)


def _as_utc(when: datetime) -> datetime:
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def _solar_offset(longitude: float) -> timedelta:
    return timedelta(hours=longitude / 15.0)


def solar_local_date(when: datetime, longitude: float) -> date:
    """Calendar date at the observer, approximated from longitude (15 degrees per hour)."""

    return (_as_utc(when) + _solar_offset(longitude)).date()


def sun_times(day: date, coords: Coordinates) -> tuple[datetime | None, datetime | None, float]:
    """Return (sunrise, sunset, day length in hours) in UTC for the local ``day``.

    Sunrise and sunset are ``None`` during polar day (length 24) or polar night (length 0).
    """

    observer = LocationInfo(latitude=coords.latitude, longitude=coords.longitude).observer
    # Local mean solar time keeps both events on the requested calendar day.
    local_tz = timezone(_solar_offset(coords.longitude))
    try:
        rise = sunrise(observer, date=day, tzinfo=local_tz)
        set_ = sunset(observer, date=day, tzinfo=local_tz)
    except ValueError:
        midday = noon(observer, date=day, tzinfo=local_tz)
        if elevation(observer, dateandtime=midday) > 0:
            logger.debug("Polar day at %.2f,%.2f on %s", coords.latitude, coords.longitude, day)
            return None, None, 24.0
        logger.debug("Polar night at %.2f,%.2f on %s", coords.latitude, coords.longitude, day)
        return None, None, 0.0

    rise_utc = rise.astimezone(timezone.utc)
    set_utc = set_.astimezone(timezone.utc)
    return rise_utc, set_utc, (set_utc - rise_utc).total_seconds() / 3600.0


def most_recent_solstice(day: date) -> tuple[date, Literal["june", "december"]]:
    december = date(day.year, *WINTER_SOLSTICE)
    june = date(day.year, *SUMMER_SOLSTICE)
    if day >= december:
        return december, "december"
    if day >= june:
        return june, "june"
    return date(day.year - 1, *WINTER_SOLSTICE), "december"


def days_since_solstice(day: date) -> int:
    solstice, _ = most_recent_solstice(day)
    return (day - solstice).days


def solstice_season(month: Literal["june", "december"], latitude: float) -> Literal["winter", "summer"]:
    northern = latitude >= 0
    if month == "december":
        return "winter" if northern else "summer"
    return "summer" if northern else "winter"


def day_length_category(hours: float) -> str:
    if hours < 8:
        return "Very Short"
    if hours < 10:
        return "Short"
    if hours < 12:
        return "Moderate"
    if hours < 14:
        return "Long"
    return "Very Long"


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def calculate_temporal_data(when: datetime, coords: Coordinates) -> TemporalData:
    local_day = solar_local_date(when, coords.longitude)
    sunrise, sunset, day_length = sun_times(local_day, coords)
    solstice, month = most_recent_solstice(local_day)
    return TemporalData(
        sunrise=_iso(sunrise),
        sunset=_iso(sunset),
        day_length_hours=round(day_length, 1),
        days_since_solstice=(local_day - solstice).days,
        last_solstice=solstice_season(month, coords.latitude),
    )
