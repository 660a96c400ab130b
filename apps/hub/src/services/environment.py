from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Optional

from services.location_key import Coordinates, to_location_key
from services.lunar import calculate_lunar_data
from services.models import EnvironmentalSnapshot, PressureTrend, WeatherData
from services.providers import CurrentWeatherClient, GeomagneticClient, SolarClient, TidalClient
from services.temporal import calculate_temporal_data
from services.weather_cache import PressureLog

logger = logging.getLogger("phantom.hub.environment")

PRESSURE_TREND_LOOKBACK = timedelta(hours=3)
PRESSURE_TREND_TOLERANCE = timedelta(hours=1)
PRESSURE_TREND_THRESHOLD_HPA = 1.0


def classify_pressure_change(change_hpa: float) -> PressureTrend:
    if change_hpa > PRESSURE_TREND_THRESHOLD_HPA:
        return "rising"
    if change_hpa < -PRESSURE_TREND_THRESHOLD_HPA:
        return "falling"
    return "stable"


class CurrentSnapshotAssembler:
    """Fans out to every current-conditions provider and merges the results into one snapshot."""

    def __init__(
        self,
        *,
        weather: CurrentWeatherClient,
        geomagnetic: GeomagneticClient,
        solar: SolarClient,
        tidal: TidalClient,
        pressure_log: PressureLog | None = None,
    ) -> None:
        self._weather = weather
        self._geomagnetic = geomagnetic
        self._solar = solar
        self._tidal = tidal
        self._pressure_log = pressure_log

    async def assemble(self, coords: Coordinates, now: datetime | None = None) -> EnvironmentalSnapshot:
        now = now or datetime.now(timezone.utc)
        weather, geomagnetic, solar, tidal = await asyncio.gather(
            self._branch("weather", self._weather.fetch(coords)),
            self._branch("geomagnetic", self._geomagnetic.fetch()),
            self._branch("solar", self._solar.fetch()),
            self._branch("tidal", self._tidal.fetch(now)),
        )
        if weather is not None and self._pressure_log is not None:
            await self._apply_pressure_trend(coords, weather, now)

        snapshot = EnvironmentalSnapshot(
            weather=weather,
            lunar=calculate_lunar_data(now),
            geomagnetic=geomagnetic,
            solar=solar,
            tidal=tidal,
            temporal=calculate_temporal_data(now, coords),
            location_name=weather.location_name if weather is not None else None,
        )
        unavailable = [
            name
            for name, value in (("weather", weather), ("geomagnetic", geomagnetic), ("solar", solar), ("tidal", tidal))
            if value is None
        ]
        if unavailable:
            logger.info("Snapshot for %s missing: %s", to_location_key(coords), ", ".join(unavailable))
        return snapshot

    async def _branch(self, name: str, call: Awaitable[Any]) -> Optional[Any]:
        try:
            return await call
        except Exception:  # noqa: BLE001 - we want to log and continue
            logger.warning("%s provider raised; treating as unavailable", name, exc_info=True)
            return None

    async def _apply_pressure_trend(self, coords: Coordinates, weather: WeatherData, now: datetime) -> None:
        assert self._pressure_log is not None
        location_key = to_location_key(coords)
        previous = await self._pressure_log.reading_near(
            location_key,
            now - PRESSURE_TREND_LOOKBACK,
            PRESSURE_TREND_TOLERANCE,
        )
        await self._pressure_log.record(location_key, weather.pressure, now)
        if previous is None:
            return
        change = round(weather.pressure - previous.pressure, 1)
        weather.pressure_change_3h = change
        weather.pressure_trend = classify_pressure_change(change)

    async def close(self) -> None:
        await asyncio.gather(
            self._weather.close(),
            self._geomagnetic.close(),
            self._solar.close(),
            self._tidal.close(),
        )
