
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict

ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Keep the import-time app from creating a cache database in the working tree.
os.environ.setdefault("WEATHER_CACHE_DB", "")
os.environ.setdefault("OPENWEATHER_API_KEY", "test-key")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from config import settings  # noqa: E402
from main import create_app  # noqa: E402
from services.models import HistoricalWeatherPoint  # noqa: E402
from services.weather_cache import WeatherCache  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings_override() -> Callable[..., None]:
    original: Dict[str, Any] = {}

    def _apply(**overrides: Any) -> None:
        for key, value in overrides.items():
            if key not in original:
                original[key] = getattr(settings, key)
            setattr(settings, key, value)

    yield _apply

    for key, value in original.items():
        setattr(settings, key, value)


@pytest.fixture
def cache_db(tmp_path: Path) -> Path:
    return tmp_path / "weather_cache.sqlite"


@pytest.fixture
def weather_cache(cache_db: Path) -> WeatherCache:
    return WeatherCache(cache_db)


@pytest.fixture
def make_point() -> Callable[..., HistoricalWeatherPoint]:
    def _make(day: str, **overrides: Any) -> HistoricalWeatherPoint:
        values: Dict[str, Any] = {
            "date": day,
            "timestamp": 0,
            "temperature": 14.2,
            "feels_like": 13.1,
            "pressure": 1014.0,
            "humidity": 72.0,
            "wind_speed": 3.4,
            "weather_description": "few clouds",
            "clouds": 20.0,
        }
        values.update(overrides)
        return HistoricalWeatherPoint(**values)

    return _make


@pytest.fixture
def client(settings_override: Callable[..., None], cache_db: Path) -> TestClient:
    settings_override(weather_cache_db=str(cache_db), openweather_api_key="test-key")
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
