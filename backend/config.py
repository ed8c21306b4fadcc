"""
Static configuration for the DireMart backend.
Every value is read once from the environment when the module is imported.
"""
import os
from typing import Dict, List


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _float(name: str, default: float) -> float:
    value = os.getenv(name)
    try:
        return float(value) if value else default
    except ValueError:
        return default


DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS: List[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "ETB")

# Live subscriptions re-query the store on this interval (seconds)
CHAT_POLL_INTERVAL = _float("CHAT_POLL_INTERVAL", 2.0)

# Address picker
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
ENABLE_MAPS_BY_DEFAULT = _flag("ENABLE_MAPS_BY_DEFAULT", False)
DEFAULT_MAP_CENTER: Dict[str, float] = {
    "lat": _float("DEFAULT_MAP_LAT", 9.0222),
    "lng": _float("DEFAULT_MAP_LNG", 38.7468),
}
MAP_LIBRARIES: List[str] = [lib.strip() for lib in os.getenv("MAP_LIBRARIES", "places").split(",") if lib.strip()]


def map_config() -> Dict:
    return {
        "api_key": GOOGLE_MAPS_API_KEY,
        "enabled": ENABLE_MAPS_BY_DEFAULT and bool(GOOGLE_MAPS_API_KEY),
        "default_center": dict(DEFAULT_MAP_CENTER),
        "libraries": list(MAP_LIBRARIES),
    }
