from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from services.environment import CurrentSnapshotAssembler
from services.history import HistoricalRangeAssembler
from services.location_key import (
    Coordinates,
    MalformedLocationKey,
    parse_location_key,
    to_location_key,
)
from services.weather_cache import WeatherCache

from .dependencies import get_history_assembler, get_snapshot_assembler, get_weather_cache

router = APIRouter(prefix="/environmental", tags=["environmental"])

DEFAULT_HISTORY_DAYS = 30


class CoordinatesRequest(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)

    def to_coordinates(self) -> Coordinates:
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class HistoryRequest(CoordinatesRequest):
    days: int = Field(default=DEFAULT_HISTORY_DAYS, ge=1, le=366, description="Number of days ending today")


class WeatherModel(BaseModel):
    temperature: float
    feels_like: float
    pressure: float
    pressure_trend: Literal["rising", "falling", "stable"] | None = None
    pressure_change_3h: float | None = Field(default=None, description="Pressure change over the last 3 hours in hPa")
    humidity: float
    weather_condition: str
    weather_description: str
    wind_speed: float
    clouds: float | None = None
    visibility: float | None = None
    aqi: int | None = Field(default=None, ge=1, le=5)
    aqi_label: str | None = None
    location_name: str | None = None


class LunarModel(BaseModel):
    phase: str
    phase_name: str
    illumination: float
    distance_km: int
    distance_trend: Literal["approaching", "receding"]
    age_days: float


class GeomagneticModel(BaseModel):
    kp_index: int
    kp_label: str
    storm_level: str
    solar_wind_speed: float | None = None
    observed_at: str | None = None


class SolarModel(BaseModel):
    xray_flux: str
    xray_class: str
    flare_probability_24h: float
    observed_at: str | None = None


class TidalModel(BaseModel):
    station_id: str
    current_height_m: float
    next_high: str | None = None
    next_low: str | None = None
    tidal_phase: Literal["rising", "falling"]


class TemporalModel(BaseModel):
    sunrise: str | None = None
    sunset: str | None = None
    day_length_hours: float
    days_since_solstice: int = Field(ge=0)
    last_solstice: Literal["winter", "summer"]


class SnapshotResponse(BaseModel):
    weather: WeatherModel | None = None
    lunar: LunarModel
    geomagnetic: GeomagneticModel | None = None
    solar: SolarModel | None = None
    tidal: TidalModel | None = None
    temporal: TemporalModel
    location_name: str | None = None


class HistoricalPointModel(BaseModel):
    date: str
    timestamp: int
    temperature: float
    feels_like: float
    pressure: float
    humidity: float
    wind_speed: float
    weather_description: str
    clouds: float


class LocationKeyResponse(BaseModel):
    key: str
    latitude: float
    longitude: float


class CacheStatsResponse(BaseModel):
    key: str
    count: int
    oldest_date: str | None = None
    newest_date: str | None = None


@router.post("", response_model=SnapshotResponse)
async def get_current_conditions(
    payload: CoordinatesRequest,
    assembler: CurrentSnapshotAssembler = Depends(get_snapshot_assembler),
):
    snapshot = await assembler.assemble(payload.to_coordinates())
    return snapshot.as_payload()


@router.post("/history", response_model=list[HistoricalPointModel])
async def get_history(
    payload: HistoryRequest,
    assembler: HistoricalRangeAssembler = Depends(get_history_assembler),
):
    if payload.days > assembler.max_days:
        raise HTTPException(status_code=400, detail=f"days must be at most {assembler.max_days}")
    end = datetime.now(timezone.utc).date()
    start = end - timedelta(days=payload.days - 1)
    points = await assembler.assemble(payload.to_coordinates(), start, end)
    return [point.as_payload() for point in points]


@router.get("/location-key", response_model=LocationKeyResponse)
async def get_location_key(
    lat: float = Query(..., ge=-90.0, le=90.0),
    lon: float = Query(..., ge=-180.0, le=180.0),
):
    key = to_location_key(Coordinates(latitude=lat, longitude=lon))
    cell = parse_location_key(key)
    return LocationKeyResponse(key=key, latitude=cell.latitude, longitude=cell.longitude)


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def get_cache_stats(
    key: str = Query(..., min_length=3, description="Location key in 'lat,lon' form"),
    cache: WeatherCache = Depends(get_weather_cache),
):
    try:
        key = to_location_key(parse_location_key(key))
    except MalformedLocationKey as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    stats = await cache.stats(key)
    return CacheStatsResponse(
        key=key,
        count=stats.count,
        oldest_date=stats.oldest_date,
        newest_date=stats.newest_date,
    )
