"""Device and geolocation presets for emulation tools."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from resilient_qa.models.config import ViewportConfig

_CHROME_ANDROID = "Mozilla/5.0 (Linux; Android 13) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/112.0.0.0 Mobile Safari/537.36"
_CHROME_DESKTOP = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/112.0.0.0 Safari/537.36"


class DeviceProfile(BaseModel):
    name: str
    user_agent: str
    viewport: ViewportConfig
    device_scale_factor: float = 1.0
    has_touch: bool = False
    is_mobile: bool = False
    platform: Optional[str] = None
    locale: str = "en-US"


class GeolocationCoordinates(BaseModel):
    latitude: float
    longitude: float
    accuracy: float = 100.0


def _device(name: str, ua: str, width: int, height: int, scale: float, mobile: bool, platform: str) -> DeviceProfile:
    return DeviceProfile(
        name=name,
        user_agent=ua,
        viewport=ViewportConfig(width=width, height=height, name=name),
        device_scale_factor=scale,
        has_touch=mobile,
        is_mobile=mobile,
        platform=platform,
    )


DEVICE_PRESETS: dict[str, DeviceProfile] = {
    d.name.lower(): d
    for d in (
        _device(
            "iPhone 14 Pro",
            "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1",
            393, 852, 3.0, True, "iOS",
        ),
        _device(
            "iPhone SE",
            "Mozilla/5.0 (iPhone; CPU iPhone OS 15_0 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/15.0 Mobile/15E148 Safari/604.1",
            375, 667, 2.0, True, "iOS",
        ),
        _device(
            "iPad Air",
            "Mozilla/5.0 (iPad; CPU OS 15_0 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/15.0 Mobile/15E148 Safari/604.1",
            820, 1180, 2.0, True, "iOS",
        ),
        _device("Samsung Galaxy S23", _CHROME_ANDROID, 360, 780, 3.0, True, "Android"),
        _device("Google Pixel 7", _CHROME_ANDROID, 412, 915, 2.625, True, "Android"),
        _device("Generic Mobile", _CHROME_ANDROID, 375, 667, 2.0, True, "Android"),
        _device("Generic Tablet", _CHROME_ANDROID.replace(" Mobile", ""), 768, 1024, 2.0, True, "Android"),
        _device("Desktop Chrome", _CHROME_DESKTOP, 1920, 1080, 1.0, False, "Windows"),
        _device("Laptop 1366x768", _CHROME_DESKTOP, 1366, 768, 1.0, False, "Windows"),
    )
}

GEOLOCATION_PRESETS: dict[str, GeolocationCoordinates] = {
    "sanfrancisco": GeolocationCoordinates(latitude=37.7749, longitude=-122.4194),
    "newyork": GeolocationCoordinates(latitude=40.7128, longitude=-74.0060),
    "london": GeolocationCoordinates(latitude=51.5074, longitude=-0.1278),
    "tokyo": GeolocationCoordinates(latitude=35.6762, longitude=139.6503),
    "sydney": GeolocationCoordinates(latitude=-33.8688, longitude=151.2093),
    "paris": GeolocationCoordinates(latitude=48.8566, longitude=2.3522),
}

_GEO_ALIASES = {"sf": "sanfrancisco", "nyc": "newyork"}


def get_device(name: str) -> Optional[DeviceProfile]:
    return DEVICE_PRESETS.get(name.strip().lower())


def get_geolocation_preset(name: str) -> Optional[GeolocationCoordinates]:
    key = name.strip().lower().replace(" ", "")
    return GEOLOCATION_PRESETS.get(_GEO_ALIASES.get(key, key))
