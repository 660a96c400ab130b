"""Normalized environmental value types shared by providers, calculators and assemblers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal, Optional

PressureTrend = Literal["rising", "falling", "stable"]
DistanceTrend = Literal["approaching", "receding"]
TidalPhase = Literal["rising", "falling"]


@dataclass(frozen=True, slots=True)
class HistoricalWeatherPoint:
    """Canonical mid-day weather reading for one calendar day at one location cell."""

    date: str
    timestamp: int
    temperature: float
    feels_like: float
    pressure: float
    humidity: float
    wind_speed: float
    weather_description: str
    clouds: float

    def as_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class WeatherData:
    temperature: float
    feels_like: float
    pressure: float
    humidity: float
    weather_condition: str
    weather_description: str
    wind_speed: float
    clouds: Optional[float]
    visibility: Optional[float]
    aqi: Optional[int] = None
    aqi_label: Optional[str] = None
    location_name: Optional[str] = None
    pressure_trend: Optional[PressureTrend] = None
    pressure_change_3h: Optional[float] = None


@dataclass(frozen=True, slots=True)
class LunarData:
    phase: str
    phase_name: str
    illumination: float
    distance_km: int
    distance_trend: DistanceTrend
    age_days: float


@dataclass(frozen=True, slots=True)
class GeomagneticData:
    kp_index: int
    kp_label: str
    storm_level: str
    solar_wind_speed: Optional[float] = None
    observed_at: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SolarData:
    xray_flux: str
    xray_class: str
    flare_probability_24h: float
    observed_at: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TidalData:
    station_id: str
    current_height_m: float
    next_high: Optional[str]
    next_low: Optional[str]
    tidal_phase: TidalPhase


@dataclass(frozen=True, slots=True)
class TemporalData:
    sunrise: Optional[str]
    sunset: Optional[str]
    day_length_hours: float
    days_since_solstice: int
    last_solstice: Literal["winter", "summer"]


@dataclass(slots=True)
class EnvironmentalSnapshot:
    lunar: LunarData
    temporal: TemporalData
    weather: Optional[WeatherData] = None
    geomagnetic: Optional[GeomagneticData] = None
    solar: Optional[SolarData] = None
    tidal: Optional[TidalData] = None
    location_name: Optional[str] = None

    def as_payload(self) -> dict[str, Any]:
        return asdict(self)
