"""NOAA Space Weather Prediction Center products: planetary K index and GOES X-ray flux."""

from __future__ import annotations

import logging
from typing import Any, Optional

from config import settings
from services.models import GeomagneticData, SolarData
from services.providers.base import ProviderClient, coerce_float

logger = logging.getLogger("phantom.hub.providers.swpc")

KP_LABELS = {
    0: "Quiet",
    1: "Quiet",
    2: "Quiet",
    3: "Unsettled",
    4: "Active",
    5: "Minor Storm",
    6: "Moderate Storm",
    7: "Strong Storm",
    8: "Severe Storm",
    9: "Extreme Storm",
}

# (upper bound exclusive, class letter, scale of the class)
XRAY_CLASSES: tuple[tuple[float, str, float], ...] = (
    (1e-7, "A", 1e-8),
    (1e-6, "B", 1e-7),
    (1e-5, "C", 1e-6),
    (1e-4, "M", 1e-5),
)
FLARE_PROBABILITY = {
    "A": 0.05,
    "B": 0.1,
    "C": 0.2,
    "M": 0.4,
    "X": 0.7,
}
LONG_WAVE_BAND = "0.1-0.8nm"


def storm_level(kp: int) -> str:
    if kp < 5:
        return "G0"
    return f"G{min(kp - 4, 5)}"


def classify_xray_flux(flux: float) -> tuple[str, str]:
    """Return (class letter, flux label) for a GOES long-wave flux in W/m^2."""

    for upper, letter, scale in XRAY_CLASSES:
        if flux < upper:
            return letter, f"{letter}{flux / scale:.1f}"
    return "X", f"X{flux / 1e-4:.1f}"


class GeomagneticClient(ProviderClient):
    name = "swpc-kp"

    def __init__(self, *, url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._url = url or settings.swpc_kp_url

    async def fetch(self) -> GeomagneticData | None:
        payload = await self._get_json(self._url)
        if payload is None:
            return None
        latest = self._latest_entry(payload)
        if latest is None:
            logger.warning("Planetary K index payload has no usable entries")
            return None
        kp_value, observed_at = latest
        kp_index = max(0, min(9, int(round(kp_value))))
        return GeomagneticData(
            kp_index=kp_index,
            kp_label=KP_LABELS.get(kp_index, "Unknown"),
            storm_level=storm_level(kp_index),
            solar_wind_speed=None,
            observed_at=observed_at,
        )

    @staticmethod
    def _latest_entry(payload: Any) -> Optional[tuple[float, Optional[str]]]:
        if not isinstance(payload, list):
            return None
        # Either [["time_tag", "Kp", ...], [...], ...] or [{"time_tag": ..., "Kp": ...}, ...]
        for entry in reversed(payload):
            if isinstance(entry, dict):
                kp = coerce_float(entry.get("Kp", entry.get("kp_index")))
                time_tag = entry.get("time_tag")
            elif isinstance(entry, list) and len(entry) >= 2:
                kp = coerce_float(entry[1])
                time_tag = entry[0]
            else:
                continue
            if kp is None:
                continue
            return kp, time_tag if isinstance(time_tag, str) else None
        return None


class SolarClient(ProviderClient):
    name = "swpc-xray"

    def __init__(self, *, url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._url = url or settings.swpc_xray_url

    async def fetch(self) -> SolarData | None:
        payload = await self._get_json(self._url)
        if payload is None:
            return None
        latest = self._latest_reading(payload)
        if latest is None:
            logger.warning("X-ray flux payload has no usable readings")
            return None
        flux, observed_at = latest
        xray_class, xray_flux = classify_xray_flux(flux)
        return SolarData(
            xray_flux=xray_flux,
            xray_class=xray_class,
            flare_probability_24h=FLARE_PROBABILITY[xray_class],
            observed_at=observed_at,
        )

    @staticmethod
    def _latest_reading(payload: Any) -> Optional[tuple[float, Optional[str]]]:
        if not isinstance(payload, list):
            return None
        readings = [item for item in payload if isinstance(item, dict)]
        long_wave = [item for item in readings if item.get("energy") == LONG_WAVE_BAND]
        for entry in reversed(long_wave or readings):
            flux = coerce_float(entry.get("flux"))
            if flux is None or flux <= 0:
                continue
            time_tag = entry.get("time_tag")
            return flux, time_tag if isinstance(time_tag, str) else None
        return None
