"""Upstream environmental data providers.

Every client returns a normalized value or ``None``; network and payload
faults are logged and absorbed at this boundary.
"""

from config import settings
from services.providers.base import HistoricalSource, ProviderClient
from services.providers.open_meteo import OpenMeteoHistoricalSource
from services.providers.openweather import CurrentWeatherClient, OpenWeatherHistoricalSource
from services.providers.swpc import GeomagneticClient, SolarClient
from services.providers.tides import TidalClient

__all__ = [
    "CurrentWeatherClient",
    "GeomagneticClient",
    "HistoricalSource",
    "OpenMeteoHistoricalSource",
    "OpenWeatherHistoricalSource",
    "ProviderClient",
    "SolarClient",
    "TidalClient",
    "build_historical_source",
]


def build_historical_source(provider: str | None = None) -> HistoricalSource:
    selected = provider or settings.historical_provider
    if selected == "open_meteo":
        return OpenMeteoHistoricalSource()
    if selected == "openweather":
        return OpenWeatherHistoricalSource()
    raise ValueError(f"Unknown historical provider {selected!r}")
