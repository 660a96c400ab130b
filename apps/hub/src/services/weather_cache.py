"""Durable SQLite cache for historical weather points and recent pressure readings.

The cache is an optimization, not a source of truth: every read fault yields
"nothing cached" and every write fault is logged and dropped. Rows are keyed by
(location_key, date) and inserted with ``INSERT OR IGNORE`` so the first writer
wins; readings for a past day never change, which makes concurrent writers safe
without a lock.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

from services.models import HistoricalWeatherPoint

logger = logging.getLogger("phantom.hub.weather_cache")

_MAX_SQL_VARIABLES = 500
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True, slots=True)
class CacheStats:
    count: int
    oldest_date: Optional[str]
    newest_date: Optional[str]


@dataclass(frozen=True, slots=True)
class PressureReading:
    location_key: str
    observed_at: datetime
    pressure: float


def _date_key(value: date | str) -> str:
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).date().isoformat() if value.tzinfo else value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _format_ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def _parse_ts(value: str) -> datetime:
    return datetime.strptime(value, _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class _SQLiteStore:
    def __init__(self, db_path: Path | str | None) -> None:
        self._db_path = Path(db_path) if db_path else None
        self._available = False
        if self._db_path is None:
            logger.info("%s disabled (no database path configured)", type(self).__name__)
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._initialize()
        except (sqlite3.Error, OSError):
            logger.error("%s unavailable at %s", type(self).__name__, self._db_path, exc_info=True)
            return
        self._available = True

    @property
    def available(self) -> bool:
        return self._available

    def _connect(self) -> sqlite3.Connection:
        assert self._db_path is not None
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=10.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        return conn

    def _initialize(self) -> None:
        raise NotImplementedError


class WeatherCache(_SQLiteStore):
    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS weather_cache (
                    location_key TEXT NOT NULL,
                    date TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    temperature REAL NOT NULL,
                    feels_like REAL NOT NULL,
                    pressure REAL NOT NULL,
                    humidity REAL NOT NULL,
                    wind_speed REAL NOT NULL,
                    weather_description TEXT,
                    clouds REAL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (location_key, date)
                );
                """
            )
            conn.commit()

    async def get_many(self, location_key: str, dates: Iterable[date | str]) -> dict[str, HistoricalWeatherPoint]:
        wanted = sorted({_date_key(value) for value in dates})
        if not self._available or not wanted:
            return {}
        try:
            return await asyncio.to_thread(self._select_many, location_key, wanted)
        except sqlite3.Error:
            logger.error("Weather cache lookup failed for %s", location_key, exc_info=True)
            return {}

    def _select_many(self, location_key: str, dates: Sequence[str]) -> dict[str, HistoricalWeatherPoint]:
        found: dict[str, HistoricalWeatherPoint] = {}
        with self._connect() as conn:
            for start in range(0, len(dates), _MAX_SQL_VARIABLES):
                chunk = dates[start : start + _MAX_SQL_VARIABLES]
                placeholders = ", ".join("?" for _ in chunk)
                cursor = conn.execute(
                    f"""
                    SELECT date, timestamp, temperature, feels_like, pressure, humidity, wind_speed,
                           weather_description, clouds
                    FROM weather_cache
                    WHERE location_key = ? AND date IN ({placeholders});
                    """,
                    (location_key, *chunk),
                )
                for row in cursor:
                    found[row["date"]] = HistoricalWeatherPoint(
                        date=row["date"],
                        timestamp=int(row["timestamp"]),
                        temperature=row["temperature"],
                        feels_like=row["feels_like"],
                        pressure=row["pressure"],
                        humidity=row["humidity"],
                        wind_speed=row["wind_speed"],
                        weather_description=row["weather_description"] or "unknown",
                        clouds=row["clouds"] if row["clouds"] is not None else 0.0,
                    )
        return found

    async def put_many(self, location_key: str, points: Sequence[HistoricalWeatherPoint]) -> None:
        if not self._available or not points:
            return
        try:
            stored = await asyncio.to_thread(self._insert_many, location_key, list(points))
        except sqlite3.Error:
            logger.error("Failed to cache %d weather points for %s", len(points), location_key, exc_info=True)
            return
        logger.info("Stored %d/%d weather cache entries for %s", stored, len(points), location_key)

    def _insert_many(self, location_key: str, points: list[HistoricalWeatherPoint]) -> int:
        created_at = _format_ts(datetime.now(timezone.utc))
        with self._connect() as conn:
            before = conn.total_changes
            conn.executemany(
                """
                INSERT OR IGNORE INTO weather_cache
                    (location_key, date, timestamp, temperature, feels_like, pressure, humidity, wind_speed,
                     weather_description, clouds, created_at)
                VALUES
                    (:location_key, :date, :timestamp, :temperature, :feels_like, :pressure, :humidity,
                     :wind_speed, :weather_description, :clouds, :created_at);
                """,
                [{**point.as_payload(), "location_key": location_key, "created_at": created_at} for point in points],
            )
            conn.commit()
            return conn.total_changes - before

    async def stats(self, location_key: str) -> CacheStats:
        empty = CacheStats(count=0, oldest_date=None, newest_date=None)
        if not self._available:
            return empty
        try:
            return await asyncio.to_thread(self._select_stats, location_key)
        except sqlite3.Error:
            logger.error("Weather cache stats failed for %s", location_key, exc_info=True)
            return empty

    def _select_stats(self, location_key: str) -> CacheStats:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(1) AS n, MIN(date) AS oldest, MAX(date) AS newest FROM weather_cache WHERE location_key = ?;",
                (location_key,),
            ).fetchone()
        return CacheStats(count=int(row["n"]), oldest_date=row["oldest"], newest_date=row["newest"])

    async def clear(self) -> None:
        if not self._available:
            return
        try:
            await asyncio.to_thread(self._truncate)
        except sqlite3.Error:
            logger.error("Failed to clear weather cache", exc_info=True)

    def _truncate(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM weather_cache;")
            conn.commit()


class PressureLog(_SQLiteStore):
    """Recent current-pressure readings per location key, for 3-hour trend lookups."""

    def __init__(self, db_path: Path | str | None, *, retention_hours: float = 24.0) -> None:
        self._retention = timedelta(hours=max(retention_hours, 1.0))
        super().__init__(db_path)

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS pressure_readings (
                    location_key TEXT NOT NULL,
                    observed_at TEXT NOT NULL,
                    pressure REAL NOT NULL,
                    PRIMARY KEY (location_key, observed_at)
                );
                """
            )
            conn.commit()

    async def record(self, location_key: str, pressure: float, observed_at: datetime) -> None:
        if not self._available:
            return
        try:
            await asyncio.to_thread(self._insert, location_key, pressure, observed_at)
        except sqlite3.Error:
            logger.error("Failed to record pressure reading for %s", location_key, exc_info=True)

    def _insert(self, location_key: str, pressure: float, observed_at: datetime) -> None:
        cutoff = _format_ts(observed_at - self._retention)
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO pressure_readings (location_key, observed_at, pressure) VALUES (?, ?, ?);",
                (location_key, _format_ts(observed_at), pressure),
            )
            conn.execute("DELETE FROM pressure_readings WHERE observed_at < ?;", (cutoff,))
            conn.commit()

    async def reading_near(
        self,
        location_key: str,
        target: datetime,
        tolerance: timedelta,
    ) -> PressureReading | None:
        if not self._available:
            return None
        try:
            rows = await asyncio.to_thread(
                self._select_window,
                location_key,
                _format_ts(target - tolerance),
                _format_ts(target + tolerance),
            )
        except sqlite3.Error:
            logger.error("Pressure reading lookup failed for %s", location_key, exc_info=True)
            return None
        if not rows:
            return None
        return min(rows, key=lambda reading: abs((reading.observed_at - target).total_seconds()))

    def _select_window(self, location_key: str, start_iso: str, end_iso: str) -> list[PressureReading]:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                SELECT observed_at, pressure FROM pressure_readings
                WHERE location_key = ? AND observed_at BETWEEN ? AND ?
                ORDER BY observed_at ASC;
                """,
                (location_key, start_iso, end_iso),
            )
            return [
                PressureReading(location_key=location_key, observed_at=_parse_ts(row["observed_at"]), pressure=row["pressure"])
                for row in cursor
            ]

    async def clear(self) -> None:
        if not self._available:
            return
        try:
            await asyncio.to_thread(self._truncate)
        except sqlite3.Error:
            logger.error("Failed to clear pressure readings", exc_info=True)

    def _truncate(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM pressure_readings;")
            conn.commit()
