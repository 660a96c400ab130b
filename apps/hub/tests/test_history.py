from __future__ import annotations

import asyncio
import math
from datetime import date, datetime, timezone
from typing import Callable, Iterable

import pytest

from services import history
from services.history import HistoricalRangeAssembler, enumerate_days
from services.location_key import Coordinates, to_location_key
from services.models import HistoricalWeatherPoint
from services.weather_cache import WeatherCache

SF = Coordinates(latitude=37.7749, longitude=-122.4194)
_real_sleep = asyncio.sleep


class FakeSource:
    name = "fake"

    def __init__(
        self,
        make_point: Callable[..., HistoricalWeatherPoint],
        *,
        missing: Iterable[str] = (),
        failing: Iterable[str] = (),
        misdated: Iterable[str] = (),
    ) -> None:
        self._make_point = make_point
        self._missing = set(missing)
        self._failing = set(failing)
        self._misdated = set(misdated)
        self.requested: list[str] = []

    async def fetch(self, coords: Coordinates, timestamp: int) -> HistoricalWeatherPoint | None:
        day = datetime.fromtimestamp(timestamp, tz=timezone.utc).date().isoformat()
        self.requested.append(day)
        if day in self._failing:
            raise RuntimeError(f"upstream exploded for {day}")
        if day in self._missing:
            return None
        if day in self._misdated:
            return self._make_point("1999-01-01", timestamp=timestamp)
        return self._make_point(day, timestamp=timestamp)

    async def close(self) -> None:
        return None


def _assembler(cache: WeatherCache, source: FakeSource, **kwargs) -> HistoricalRangeAssembler:
    kwargs.setdefault("batch_delay", 0)
    return HistoricalRangeAssembler(cache, source, **kwargs)


def test_enumerate_days_samples_noon_utc() -> None:
    slots = enumerate_days(date(2025, 1, 30), date(2025, 2, 2), max_days=90)
    assert [slot.date for slot in slots] == ["2025-01-30", "2025-01-31", "2025-02-01", "2025-02-02"]
    assert slots[0].timestamp == int(datetime(2025, 1, 30, 12, tzinfo=timezone.utc).timestamp())


def test_enumerate_days_single_day_and_inverted_range() -> None:
    assert [slot.date for slot in enumerate_days(date(2025, 1, 1), date(2025, 1, 1), 90)] == ["2025-01-01"]
    assert enumerate_days(date(2025, 1, 2), date(2025, 1, 1), 90) == []


def test_enumerate_days_keeps_most_recent_days_when_capped() -> None:
    slots = enumerate_days(date(2024, 1, 1), date(2024, 12, 31), max_days=90)
    assert len(slots) == 90
    assert slots[-1].date == "2024-12-31"
    assert slots[0].date == "2024-10-03"


@pytest.mark.anyio
async def test_fetches_every_uncached_day_and_sorts(weather_cache: WeatherCache, make_point) -> None:
    source = FakeSource(make_point)
    points = await _assembler(weather_cache, source, batch_size=3).assemble(SF, date(2025, 1, 1), date(2025, 1, 7))

    assert [point.date for point in points] == [f"2025-01-0{day}" for day in range(1, 8)]
    assert sorted(source.requested) == [point.date for point in points]


@pytest.mark.anyio
async def test_fully_cached_range_makes_no_provider_calls(weather_cache: WeatherCache, make_point) -> None:
    key = to_location_key(SF)
    await weather_cache.put_many(key, [make_point(f"2025-01-0{day}") for day in range(1, 6)])
    source = FakeSource(make_point)

    points = await _assembler(weather_cache, source).assemble(SF, date(2025, 1, 1), date(2025, 1, 5))

    assert len(points) == 5
    assert source.requested == []


@pytest.mark.anyio
async def test_only_uncached_days_are_requested(weather_cache: WeatherCache, make_point) -> None:
    key = to_location_key(SF)
    await weather_cache.put_many(key, [make_point("2025-01-02", temperature=-3.0)])
    source = FakeSource(make_point)

    points = await _assembler(weather_cache, source).assemble(SF, date(2025, 1, 1), date(2025, 1, 3))

    assert sorted(source.requested) == ["2025-01-01", "2025-01-03"]
    assert [point.temperature for point in points] == [14.2, -3.0, 14.2]


@pytest.mark.anyio
async def test_failed_day_is_omitted_not_fatal(weather_cache: WeatherCache, make_point) -> None:
    source = FakeSource(make_point, failing=["2025-01-03"])

    points = await _assembler(weather_cache, source).assemble(SF, date(2025, 1, 1), date(2025, 1, 5))

    assert [point.date for point in points] == ["2025-01-01", "2025-01-02", "2025-01-04", "2025-01-05"]


@pytest.mark.anyio
async def test_missing_and_misdated_days_are_skipped(weather_cache: WeatherCache, make_point) -> None:
    source = FakeSource(make_point, missing=["2025-01-01"], misdated=["2025-01-02"])

    points = await _assembler(weather_cache, source).assemble(SF, date(2025, 1, 1), date(2025, 1, 4))

    assert [point.date for point in points] == ["2025-01-03", "2025-01-04"]
    assert (await weather_cache.stats(to_location_key(SF))).count == 2


@pytest.mark.anyio
async def test_fetched_points_are_written_back(weather_cache: WeatherCache, make_point) -> None:
    first = FakeSource(make_point)
    await _assembler(weather_cache, first).assemble(SF, date(2025, 1, 1), date(2025, 1, 4))

    second = FakeSource(make_point)
    points = await _assembler(weather_cache, second).assemble(SF, date(2025, 1, 1), date(2025, 1, 4))

    assert len(first.requested) == 4
    assert second.requested == []
    assert len(points) == 4


@pytest.mark.anyio
async def test_nearby_coordinates_reuse_the_same_cache_cell(weather_cache: WeatherCache, make_point) -> None:
    await _assembler(weather_cache, FakeSource(make_point)).assemble(SF, date(2025, 1, 1), date(2025, 1, 2))

    neighbour = FakeSource(make_point)
    nearby = Coordinates(latitude=37.7712, longitude=-122.4189)
    await _assembler(weather_cache, neighbour).assemble(nearby, date(2025, 1, 1), date(2025, 1, 2))

    assert neighbour.requested == []


@pytest.mark.anyio
async def test_range_is_capped_to_most_recent_days(weather_cache: WeatherCache, make_point) -> None:
    source = FakeSource(make_point)

    points = await _assembler(weather_cache, source, max_days=90, batch_size=25).assemble(
        SF, date(2024, 1, 1), date(2024, 12, 31)
    )

    assert len(points) == 90
    assert len(source.requested) == 90
    assert points[-1].date == "2024-12-31"


@pytest.mark.anyio
async def test_inverted_range_returns_empty(weather_cache: WeatherCache, make_point) -> None:
    source = FakeSource(make_point)
    assert await _assembler(weather_cache, source).assemble(SF, date(2025, 1, 5), date(2025, 1, 1)) == []
    assert source.requested == []


@pytest.mark.anyio
async def test_cache_write_failure_still_returns_points(weather_cache: WeatherCache, make_point, monkeypatch) -> None:
    import sqlite3

    def _broken(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(weather_cache, "_insert_many", _broken)
    points = await _assembler(weather_cache, FakeSource(make_point)).assemble(SF, date(2025, 1, 1), date(2025, 1, 3))

    assert len(points) == 3


@pytest.mark.anyio
async def test_works_without_a_cache(make_point) -> None:
    source = FakeSource(make_point)
    points = await _assembler(WeatherCache(None), source).assemble(
        SF, datetime(2025, 1, 1, 18, tzinfo=timezone.utc), datetime(2025, 1, 2, 3, tzinfo=timezone.utc)
    )
    assert [point.date for point in points] == ["2025-01-01", "2025-01-02"]


class PacedSource:
    """Records fetch start/end order and the peak number of concurrent fetches."""

    name = "paced"

    def __init__(self, make_point: Callable[..., HistoricalWeatherPoint], events: list[tuple[str, str]]) -> None:
        self._make_point = make_point
        self._events = events
        self.in_flight = 0
        self.peak = 0

    async def fetch(self, coords: Coordinates, timestamp: int) -> HistoricalWeatherPoint:
        day = datetime.fromtimestamp(timestamp, tz=timezone.utc).date().isoformat()
        self._events.append(("start", day))
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await _real_sleep(0)
        self.in_flight -= 1
        self._events.append(("end", day))
        return self._make_point(day, timestamp=timestamp)

    async def close(self) -> None:
        return None


@pytest.mark.anyio
@pytest.mark.parametrize(("days", "batch_size"), [(7, 3), (6, 3), (3, 5), (10, 1)])
async def test_batches_are_bounded_and_paced(weather_cache: WeatherCache, make_point, monkeypatch, days, batch_size) -> None:
    events: list[tuple[str, str]] = []
    delay = 0.25

    async def _recording_sleep(seconds: float) -> None:
        if seconds == delay:
            events.append(("delay", ""))
        await _real_sleep(0)

    monkeypatch.setattr(history.asyncio, "sleep", _recording_sleep)
    source = PacedSource(make_point, events)
    assembler = HistoricalRangeAssembler(weather_cache, source, batch_size=batch_size, batch_delay=delay)

    points = await assembler.assemble(SF, date(2025, 3, 1), date(2025, 3, days))

    assert len(points) == days
    assert source.peak == min(batch_size, days)
    delays = [index for index, (kind, _) in enumerate(events) if kind == "delay"]
    assert len(delays) == math.ceil(days / batch_size) - 1
    assert events[-1][0] == "end"
    for index in delays:
        before = events[:index]
        started = sum(1 for kind, _ in before if kind == "start")
        finished = sum(1 for kind, _ in before if kind == "end")
        # Every fetch of the previous batch has completed before the pause.
        assert started == finished
        assert started % batch_size == 0
