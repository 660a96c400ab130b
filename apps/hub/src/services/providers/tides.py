from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from config import settings
from services.models import TidalData
from services.providers.base import ProviderClient, coerce_float

logger = logging.getLogger("phantom.hub.providers.tides")

PREDICTION_WINDOW = timedelta(hours=24)


def _parse_noaa_time(value: Any) -> Optional[datetime]:
    # CO-OPS returns "YYYY-MM-DD HH:MM" in the requested time zone (GMT here).
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m-%d %H:%M")
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


class TidalClient(ProviderClient):
    """Latest water level and upcoming high/low predictions for one CO-OPS station."""

    name = "noaa-tides"

    def __init__(self, *, station_id: str | None = None, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._station_id = station_id or settings.tide_station_id
        self._base_url = base_url or settings.tides_base_url

    @property
    def station_id(self) -> str:
        return self._station_id

    async def fetch(self, now: datetime | None = None) -> TidalData | None:
        now = now or datetime.now(timezone.utc)
        common = {
            "station": self._station_id,
            "datum": "MLLW",
            "units": "metric",
            "time_zone": "gmt",
            "format": "json",
        }
        water_level, predictions = await asyncio.gather(
            self._get_json(self._base_url, {**common, "product": "water_level", "date": "latest"}),
            self._get_json(
                self._base_url,
                {
                    **common,
                    "product": "predictions",
                    "interval": "hilo",
                    "begin_date": now.strftime("%Y%m%d"),
                    "end_date": (now + PREDICTION_WINDOW).strftime("%Y%m%d"),
                },
            ),
        )
        if water_level is None or predictions is None:
            return None

        height = self._current_height(water_level)
        events = self._upcoming_events(predictions, now)
        if height is None or not events:
            logger.warning("Tide payloads for station %s missing water level or predictions", self._station_id)
            return None

        next_high = next((when for when, kind in events if kind == "H"), None)
        next_low = next((when for when, kind in events if kind == "L"), None)
        return TidalData(
            station_id=self._station_id,
            current_height_m=round(height, 2),
            next_high=_iso(next_high),
            next_low=_iso(next_low),
            tidal_phase="rising" if events[0][1] == "H" else "falling",
        )

    @staticmethod
    def _current_height(payload: Any) -> Optional[float]:
        if not isinstance(payload, dict):
            return None
        data = payload.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None
        return coerce_float(data[0].get("v"))

    @staticmethod
    def _upcoming_events(payload: Any, now: datetime) -> list[tuple[datetime, str]]:
        if not isinstance(payload, dict):
            return []
        raw = payload.get("predictions")
        if not isinstance(raw, list):
            return []
        events: list[tuple[datetime, str]] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            when = _parse_noaa_time(item.get("t"))
            kind = item.get("type")
            if when is None or kind not in ("H", "L") or when <= now:
                continue
            events.append((when, kind))
        events.sort(key=lambda event: event[0])
        return events
