from pathlib import Path
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Load apps/hub/.env and accept env keys in any case
    _env_file = Path(__file__).resolve().parent.parent / ".env"
    model_config = SettingsConfigDict(env_file=str(_env_file), extra="ignore", case_sensitive=False)

    app_name: str = "Phantom Tracker Hub"
    app_version: str = "0.1.0"
    debug: bool = True
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    port: int = 8000

    # Upstream providers
    provider_user_agent: str = Field(
        default="PhantomTrackerHub/0.1.0 (support@example.com)",
        description="User-Agent sent to upstream environmental providers.",
    )
    provider_request_timeout: float = Field(
        default=10.0,
        ge=1.0,
        description="Timeout in seconds for provider HTTP calls",
    )
    openweather_api_key: str | None = Field(
        default=None,
        description="OpenWeatherMap API key. Current weather and OpenWeather history are unavailable without it.",
    )
    openweather_base_url: str = Field(
        default="https://api.openweathermap.org/data/2.5",
        description="Base URL for OpenWeatherMap current weather and air pollution endpoints",
    )
    openweather_onecall_url: str = Field(
        default="https://api.openweathermap.org/data/3.0/onecall/timemachine",
        description="OpenWeatherMap One Call 3.0 time machine endpoint for historical readings",
    )
    open_meteo_archive_url: str = Field(
        default="https://archive-api.open-meteo.com/v1/archive",
        description="Open-Meteo historical archive endpoint",
    )
    historical_provider: Literal["openweather", "open_meteo"] = Field(
        default="openweather",
        description="Vendor used for historical daily weather points.",
    )
    swpc_kp_url: str = Field(
        default="https://services.swpc.noaa.gov/products/noaa-planetary-k-index.json",
        description="NOAA SWPC planetary K index product",
    )
    swpc_xray_url: str = Field(
        default="https://services.swpc.noaa.gov/json/goes/primary/xrays-6-hour.json",
        description="NOAA SWPC GOES X-ray flux product",
    )
    tides_base_url: str = Field(
        default="https://api.tidesandcurrents.noaa.gov/api/prod/datagetter",
        description="NOAA CO-OPS data getter endpoint",
    )
    tide_station_id: str = Field(default="9414290", description="NOAA tide station identifier (San Francisco)")

    # Historical weather cache
    weather_cache_db: str | None = Field(
        default="data/weather_cache.sqlite",
        description="SQLite database path for cached historical weather. Set to blank to disable caching.",
    )
    history_max_days: int = Field(default=90, ge=1, le=366, description="Maximum span of one historical assembly")
    history_batch_size: int = Field(default=10, ge=1, description="Concurrent provider calls per batch")
    history_batch_delay_seconds: float = Field(
        default=0.1,
        ge=0.0,
        description="Pause between historical fetch batches to respect upstream rate limits",
    )
    pressure_log_retention_hours: float = Field(
        default=24.0,
        ge=1.0,
        description="How long current pressure readings are kept for trend computation.",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def normalize_cors(cls, v):
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                import json
                return json.loads(s)
            if s in ("", "*"):
                return ["*"]
            return [p.strip() for p in s.split(",")]
        return v

    @field_validator("weather_cache_db", "openweather_api_key", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

settings = Settings()
