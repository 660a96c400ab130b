from fastapi import APIRouter

from config import settings
from .environment_router import router as environment_router

router = APIRouter(prefix="/api/v1", tags=["v1"])
router.include_router(environment_router)


@router.get("/health")
async def health():
    return {"status": "ok", "version": settings.app_version}


@router.get("/info")
async def info():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "debug": settings.debug,
        "cors_origins": settings.cors_origins,
        "historical_provider": settings.historical_provider,
        "tide_station_id": settings.tide_station_id,
        "weather_cache_enabled": settings.weather_cache_db is not None,
    }
