from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from config import settings
from services.location_key import Coordinates
from services.models import HistoricalWeatherPoint, WeatherData
from services.providers.base import (
    ProviderClient,
    coerce_float,
    date_for_timestamp,
    longitude_offset_seconds,
    pick_noon_sample,
    round1,
)

logger = logging.getLogger("phantom.hub.providers.openweather")

AQI_LABELS = {
    1: "Good",
    2: "Fair",
    3: "Moderate",
    4: "Poor",
    5: "Very Poor",
}


class CurrentWeatherClient(ProviderClient):
    """Current conditions plus the 1-5 air quality index from OpenWeatherMap."""

    name = "openweather-current"

    def __init__(self, *, api_key: str | None = None, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key if api_key is not None else settings.openweather_api_key
        self._base_url = (base_url or settings.openweather_base_url).rstrip("/")

    async def fetch(self, coords: Coordinates) -> WeatherData | None:
        if not self._api_key:
            logger.warning("OpenWeatherMap API key not set; current weather unavailable")
            return None

        params = {"lat": coords.latitude, "lon": coords.longitude, "appid": self._api_key}
        weather_payload, aqi_payload = await asyncio.gather(
            self._get_json(f"{self._base_url}/weather", {**params, "units": "metric"}),
            self._get_json(f"{self._base_url}/air_pollution", params),
        )
        if not isinstance(weather_payload, dict):
            return None
        weather = self._parse_weather(weather_payload)
        if weather is None:
            logger.warning("OpenWeatherMap current payload missing required fields")
            return None

        aqi = self._parse_aqi(aqi_payload)
        if aqi is not None:
            weather.aqi = aqi
            weather.aqi_label = AQI_LABELS.get(aqi)
        return weather

    @staticmethod
    def _parse_weather(payload: dict[str, Any]) -> Optional[WeatherData]:
        main = payload.get("main")
        if not isinstance(main, dict):
            return None
        temperature = coerce_float(main.get("temp"))
        feels_like = coerce_float(main.get("feels_like"))
        pressure = coerce_float(main.get("pressure"))
        humidity = coerce_float(main.get("humidity"))
        if temperature is None or pressure is None or humidity is None:
            return None

        conditions = payload.get("weather")
        first = conditions[0] if isinstance(conditions, list) and conditions and isinstance(conditions[0], dict) else {}
        wind = payload.get("wind") if isinstance(payload.get("wind"), dict) else {}
        clouds = payload.get("clouds") if isinstance(payload.get("clouds"), dict) else {}
        wind_speed = coerce_float(wind.get("speed"))
        name = payload.get("name")

        return WeatherData(
            temperature=round1(temperature),
            feels_like=round1(feels_like if feels_like is not None else temperature),
            pressure=pressure,
            humidity=humidity,
            weather_condition=str(first.get("main") or "Unknown"),
            weather_description=str(first.get("description") or "Unknown"),
            wind_speed=round1(wind_speed) if wind_speed is not None else 0.0,
            clouds=coerce_float(clouds.get("all")),
            visibility=coerce_float(payload.get("visibility")),
            location_name=name if isinstance(name, str) and name else None,
        )

    @staticmethod
    def _parse_aqi(payload: Any) -> Optional[int]:
        if not isinstance(payload, dict):
            return None
        entries = payload.get("list")
        if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
            return None
        main = entries[0].get("main")
        value = coerce_float(main.get("aqi")) if isinstance(main, dict) else None
        if value is None or int(value) not in AQI_LABELS:
            return None
        return int(value)


class OpenWeatherHistoricalSource(ProviderClient):
    """One Call 3.0 time machine readings, reduced to the sample nearest local noon."""

    name = "openweather-history"

    def __init__(self, *, api_key: str | None = None, url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key if api_key is not None else settings.openweather_api_key
        self._url = url or settings.openweather_onecall_url

    async def fetch(self, coords: Coordinates, timestamp: int) -> HistoricalWeatherPoint | None:
        if not self._api_key:
            logger.warning("OpenWeatherMap API key not set; historical weather unavailable")
            return None

        params = {
            "lat": coords.latitude,
            "lon": coords.longitude,
            "dt": int(timestamp),
            "units": "metric",
            "appid": self._api_key,
        }
        client = await self._get_client()
        try:
            response = await client.get(self._url, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Historical weather request failed for %s: %s", date_for_timestamp(timestamp), exc)
            return None
        if response.status_code in (401, 403):
            logger.warning("One Call API 3.0 not available for this key (HTTP %s)", response.status_code)
            return None
        if response.is_error:
            logger.warning(
                "Historical weather API error %s for %s", response.status_code, date_for_timestamp(timestamp)
            )
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Historical weather payload for %s is not JSON", date_for_timestamp(timestamp))
            return None
        return self._parse(payload, coords, timestamp)

    @staticmethod
    def _parse(payload: Any, coords: Coordinates, timestamp: int) -> HistoricalWeatherPoint | None:
        if not isinstance(payload, dict):
            return None
        data = payload.get("data")
        if not isinstance(data, list):
            return None
        samples = [item for item in data if isinstance(item, dict)]
        if not samples:
            return None
        offset = coerce_float(payload.get("timezone_offset"))
        if offset is None:
            offset = longitude_offset_seconds(coords.longitude)
        sample = pick_noon_sample(samples, offset)
        if sample is None:
            return None

        sampled_at = coerce_float(sample.get("dt"))
        temperature = coerce_float(sample.get("temp"))
        pressure = coerce_float(sample.get("pressure"))
        humidity = coerce_float(sample.get("humidity"))
        if sampled_at is None or temperature is None or pressure is None or humidity is None:
            return None
        feels_like = coerce_float(sample.get("feels_like"))
        wind_speed = coerce_float(sample.get("wind_speed"))
        clouds = coerce_float(sample.get("clouds"))
        conditions = sample.get("weather")
        description = None
        if isinstance(conditions, list) and conditions and isinstance(conditions[0], dict):
            description = conditions[0].get("description")

        return HistoricalWeatherPoint(
            date=date_for_timestamp(timestamp),
            timestamp=int(sampled_at),
            temperature=round1(temperature),
            feels_like=round1(feels_like if feels_like is not None else temperature),
            pressure=pressure,
            humidity=humidity,
            wind_speed=round1(wind_speed) if wind_speed is not None else 0.0,
            weather_description=str(description) if description else "unknown",
            clouds=clouds if clouds is not None else 0.0,
        )
