from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Sequence

from config import settings
from services.location_key import Coordinates, to_location_key
from services.models import HistoricalWeatherPoint
from services.providers.base import HistoricalSource
from services.weather_cache import WeatherCache

logger = logging.getLogger("phantom.hub.history")

SAMPLE_TIME = time(12, 0, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class DaySlot:
    date: str
    timestamp: int


def enumerate_days(start: date, end: date, max_days: int) -> list[DaySlot]:
    """List every calendar day in ``[start, end]`` sampled at 12:00 UTC, newest ``max_days`` only."""

    if end < start:
        return []
    span = (end - start).days + 1
    if span > max_days:
        start = end - timedelta(days=max_days - 1)
    slots: list[DaySlot] = []
    current = start
    while current <= end:
        instant = datetime.combine(current, SAMPLE_TIME)
        slots.append(DaySlot(date=current.isoformat(), timestamp=int(instant.timestamp())))
        current += timedelta(days=1)
    return slots


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


class HistoricalRangeAssembler:
    """Builds a daily historical weather series from the cache plus batched provider fetches."""

    def __init__(
        self,
        cache: WeatherCache,
        source: HistoricalSource,
        *,
        max_days: int | None = None,
        batch_size: int | None = None,
        batch_delay: float | None = None,
    ) -> None:
        self._cache = cache
        self._source = source
        self._max_days = max(1, max_days if max_days is not None else settings.history_max_days)
        self._batch_size = max(1, batch_size if batch_size is not None else settings.history_batch_size)
        self._batch_delay = max(
            0.0, batch_delay if batch_delay is not None else settings.history_batch_delay_seconds
        )

    @property
    def max_days(self) -> int:
        return self._max_days

    async def assemble(
        self,
        coords: Coordinates,
        start: date | datetime,
        end: date | datetime,
    ) -> list[HistoricalWeatherPoint]:
        slots = enumerate_days(_as_date(start), _as_date(end), self._max_days)
        if not slots:
            return []

        location_key = to_location_key(coords)
        cached = await self._cache.get_many(location_key, [slot.date for slot in slots])
        uncached = [slot for slot in slots if slot.date not in cached]
        if cached:
            logger.info("Weather cache hit: %d/%d dates cached for %s", len(cached), len(slots), location_key)

        fetched: list[HistoricalWeatherPoint] = []
        if uncached:
            logger.info("Fetching %d dates from %s for %s", len(uncached), self._source.name, location_key)
            fetched = await self._fetch_uncached(coords, uncached)
            if fetched:
                await self._cache.put_many(location_key, fetched)
            missing = len(uncached) - len(fetched)
            if missing:
                logger.warning("%d/%d dates unavailable from %s for %s", missing, len(uncached), self._source.name, location_key)

        merged = {point.date: point for point in cached.values()}
        for point in fetched:
            merged.setdefault(point.date, point)
        return sorted(merged.values(), key=lambda point: point.date)

    async def _fetch_uncached(self, coords: Coordinates, slots: Sequence[DaySlot]) -> list[HistoricalWeatherPoint]:
        results: list[HistoricalWeatherPoint] = []
        for offset in range(0, len(slots), self._batch_size):
            if offset and self._batch_delay:
                await asyncio.sleep(self._batch_delay)
            batch = slots[offset : offset + self._batch_size]
            responses = await asyncio.gather(
                *(self._source.fetch(coords, slot.timestamp) for slot in batch),
                return_exceptions=True,
            )
            for slot, response in zip(batch, responses):
                if isinstance(response, Exception):
                    logger.warning("Historical fetch for %s raised %r", slot.date, response)
                    continue
                if isinstance(response, BaseException):
                    raise response
                if response is None:
                    logger.debug("No historical reading for %s", slot.date)
                    continue
                if response.date != slot.date:
                    logger.warning("Discarding reading dated %s returned for %s", response.date, slot.date)
                    continue
                results.append(response)
        return results
