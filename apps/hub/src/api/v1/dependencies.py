from __future__ import annotations

from fastapi import HTTPException, Request, status

from services.environment import CurrentSnapshotAssembler
from services.history import HistoricalRangeAssembler
from services.weather_cache import WeatherCache


def _component(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"{name} not initialised")
    return component


def get_snapshot_assembler(request: Request) -> CurrentSnapshotAssembler:
    return _component(request, "snapshot_assembler")


def get_history_assembler(request: Request) -> HistoricalRangeAssembler:
    return _component(request, "history_assembler")


def get_weather_cache(request: Request) -> WeatherCache:
    return _component(request, "weather_cache")
