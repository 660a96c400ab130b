from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import httpx

from config import settings
from services.location_key import Coordinates
from services.models import HistoricalWeatherPoint

logger = logging.getLogger("phantom.hub.providers")


class HistoricalSource(Protocol):
    """A vendor able to produce one canonical daily reading for a point in time."""

    name: str

    async def fetch(self, coords: Coordinates, timestamp: int) -> HistoricalWeatherPoint | None:
        ...

    async def close(self) -> None:
        ...


class ProviderClient:
    """Lazily managed ``httpx.AsyncClient`` plus a fetch helper that never raises."""

    name = "provider"

    def __init__(self, *, timeout: float | None = None, user_agent: str | None = None) -> None:
        self._client: Optional[httpx.AsyncClient] = None
        self._timeout = timeout if timeout is not None else settings.provider_request_timeout
        self._user_agent = user_agent or settings.provider_user_agent

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {
                "User-Agent": self._user_agent,
                "Accept": "application/json",
            }
            self._client = httpx.AsyncClient(headers=headers, timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any | None:
        client = await self._get_client()
        logger.debug("%s request %s params=%s", self.name, url, _redact(params))
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("%s returned HTTP %s", self.name, exc.response.status_code)
            return None
        except httpx.HTTPError as exc:
            logger.warning("%s request failed: %s", self.name, exc)
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("%s returned a body that is not valid JSON", self.name)
            return None


def _redact(params: dict[str, Any] | None) -> dict[str, Any] | None:
    if not params or "appid" not in params:
        return params
    return {**params, "appid": "***"}


def coerce_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            numeric = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def round1(value: float) -> float:
    return round(value, 1)


def pick_noon_sample(samples: list[dict[str, Any]], utc_offset_seconds: float) -> Optional[dict[str, Any]]:
    """Pick the sample nearest local noon among those in the 11:00-13:00 local window.

    Falls back to the temporal midpoint of the usable samples when none sits near
    noon. Samples without a representable epoch ``dt`` are ignored; returns ``None``
    when nothing usable remains.
    """

    usable: list[tuple[float, dict[str, Any]]] = []
    best: dict[str, Any] | None = None
    best_distance = math.inf
    for sample in samples:
        dt = coerce_float(sample.get("dt"))
        if dt is None:
            continue
        try:
            local = datetime.fromtimestamp(dt + utc_offset_seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug("Ignoring sample with unrepresentable dt %r", dt)
            continue
        usable.append((dt, sample))
        local_hours = local.hour + local.minute / 60.0 + local.second / 3600.0
        if not 11.0 <= local_hours <= 13.0:
            continue
        distance = abs(local_hours - 12.0)
        if distance < best_distance:
            best = sample
            best_distance = distance
    if best is not None:
        return best
    if not usable:
        return None
    usable.sort(key=lambda item: item[0])
    return usable[len(usable) // 2][1]


def longitude_offset_seconds(longitude: float) -> float:
    return longitude / 15.0 * 3600.0


def date_for_timestamp(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date().isoformat()
