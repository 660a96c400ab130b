from __future__ import annotations

import logging
from typing import Any

from config import settings
from services.location_key import Coordinates
from services.models import HistoricalWeatherPoint
from services.providers.base import (
    ProviderClient,
    coerce_float,
    date_for_timestamp,
    longitude_offset_seconds,
    pick_noon_sample,
    round1,
)

logger = logging.getLogger("phantom.hub.providers.open_meteo")

HOURLY_VARIABLES = [
    "temperature_2m",
    "apparent_temperature",
    "relative_humidity_2m",
    "pressure_msl",
    "wind_speed_10m",
    "cloud_cover",
    "weather_code",
]

# WMO weather interpretation codes (https://open-meteo.com/en/docs)
WMO_DESCRIPTIONS: dict[int, str] = {
    0: "clear sky",
    1: "mainly clear",
    2: "partly cloudy",
    3: "overcast",
    45: "fog",
    48: "depositing rime fog",
    51: "light drizzle",
    53: "drizzle",
    55: "dense drizzle",
    56: "light freezing drizzle",
    57: "freezing drizzle",
    61: "light rain",
    63: "rain",
    65: "heavy rain",
    66: "light freezing rain",
    67: "freezing rain",
    71: "light snow",
    73: "snow",
    75: "heavy snow",
    77: "snow grains",
    80: "light rain showers",
    81: "rain showers",
    82: "violent rain showers",
    85: "light snow showers",
    86: "snow showers",
    95: "thunderstorm",
    96: "thunderstorm with hail",
    99: "thunderstorm with heavy hail",
}


def wmo_code_to_description(code: float | None) -> str:
    if code is None:
        return "unknown"
    return WMO_DESCRIPTIONS.get(int(code), "unknown")


class OpenMeteoHistoricalSource(ProviderClient):
    """Open-Meteo archive readings; needs no API key."""

    name = "open-meteo-history"

    def __init__(self, *, url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._url = url or settings.open_meteo_archive_url

    async def fetch(self, coords: Coordinates, timestamp: int) -> HistoricalWeatherPoint | None:
        day = date_for_timestamp(timestamp)
        params = {
            "latitude": f"{coords.latitude:.4f}",
            "longitude": f"{coords.longitude:.4f}",
            "start_date": day,
            "end_date": day,
            "hourly": ",".join(HOURLY_VARIABLES),
            "wind_speed_unit": "ms",
            "timezone": "GMT",
            "timeformat": "unixtime",
        }
        payload = await self._get_json(self._url, params)
        point = self._parse(payload, coords, day)
        if point is None and payload is not None:
            logger.warning("Open-Meteo archive payload for %s missing hourly fields", day)
        return point

    @staticmethod
    def _parse(payload: Any, coords: Coordinates, day: str) -> HistoricalWeatherPoint | None:
        if not isinstance(payload, dict):
            return None
        hourly = payload.get("hourly")
        if not isinstance(hourly, dict):
            return None
        times = hourly.get("time")
        if not isinstance(times, list) or not times:
            return None

        samples: list[dict[str, Any]] = []
        for index, raw_time in enumerate(times):
            sample: dict[str, Any] = {"dt": raw_time}
            for variable in HOURLY_VARIABLES:
                series = hourly.get(variable)
                sample[variable] = series[index] if isinstance(series, list) and index < len(series) else None
            samples.append(sample)

        # Requested in GMT, so local noon is approximated from longitude.
        offset = longitude_offset_seconds(coords.longitude)
        sample = pick_noon_sample(samples, offset)
        if sample is None:
            return None

        sampled_at = coerce_float(sample.get("dt"))
        temperature = coerce_float(sample.get("temperature_2m"))
        pressure = coerce_float(sample.get("pressure_msl"))
        humidity = coerce_float(sample.get("relative_humidity_2m"))
        if sampled_at is None or temperature is None or pressure is None or humidity is None:
            return None
        feels_like = coerce_float(sample.get("apparent_temperature"))
        wind_speed = coerce_float(sample.get("wind_speed_10m"))
        clouds = coerce_float(sample.get("cloud_cover"))

        return HistoricalWeatherPoint(
            date=day,
            timestamp=int(sampled_at),
            temperature=round1(temperature),
            feels_like=round1(feels_like if feels_like is not None else temperature),
            pressure=pressure,
            humidity=humidity,
            wind_speed=round1(wind_speed) if wind_speed is not None else 0.0,
            weather_description=wmo_code_to_description(coerce_float(sample.get("weather_code"))),
            clouds=clouds if clouds is not None else 0.0,
        )
