from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import logging, time

from config import settings
from api.v1.router import router as v1_router
from services.environment import CurrentSnapshotAssembler
from services.history import HistoricalRangeAssembler
from services.location_key import InvalidCoordinates, MalformedLocationKey
from services.providers import (
    CurrentWeatherClient,
    GeomagneticClient,
    SolarClient,
    TidalClient,
    build_historical_source,
)
from services.weather_cache import PressureLog, WeatherCache

logger = logging.getLogger("phantom.hub")
if not logger.handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _attach_components(app: FastAPI) -> None:
    weather_cache = WeatherCache(settings.weather_cache_db)
    pressure_log = PressureLog(settings.weather_cache_db, retention_hours=settings.pressure_log_retention_hours)
    historical_source = build_historical_source()
    app.state.weather_cache = weather_cache
    app.state.pressure_log = pressure_log
    app.state.historical_source = historical_source
    app.state.history_assembler = HistoricalRangeAssembler(weather_cache, historical_source)
    app.state.snapshot_assembler = CurrentSnapshotAssembler(
        weather=CurrentWeatherClient(),
        geomagnetic=GeomagneticClient(),
        solar=SolarClient(),
        tidal=TidalClient(),
        pressure_log=pressure_log,
    )
    logger.info(
        "Environmental core ready (history via %s, cache %s)",
        historical_source.name,
        "enabled" if weather_cache.available else "disabled",
    )


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, version=settings.app_version)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        dur_ms = (time.perf_counter() - start) * 1000.0
        logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, dur_ms)
        return response

    @app.exception_handler(MalformedLocationKey)
    @app.exception_handler(InvalidCoordinates)
    async def invalid_location(request: Request, exc: ValueError):
        return JSONResponse({"detail": str(exc)}, status_code=400)

    @app.get("/", tags=["meta"])
    async def root():
        return {"name": settings.app_name, "version": settings.app_version}

    @app.get("/health", tags=["meta"])
    async def health():
        return JSONResponse({"status": "ok", "version": settings.app_version})

    app.include_router(v1_router)
    _attach_components(app)

    @app.on_event("shutdown")
    async def _shutdown():
        await app.state.snapshot_assembler.close()
        await app.state.historical_source.close()

    return app

app = create_app()
