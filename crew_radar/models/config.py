"""Configuration constants for the crew proximity radar."""

import os
import logging
from datetime import timedelta
from typing import Dict, Any, Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ────────────────────────────────────────────────────────────────────
#  Geographic Constants
# ────────────────────────────────────────────────────────────────────
# Mean Earth radius (distance calculations use km, the scan line uses metres)
EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_M = 6371000.0

# Fallback viewer position when the device refuses or fails a fix (Mumbai)
DEFAULT_VIEWER_LOCATION: Tuple[float, float] = (19.076, 72.8777)

# A new fix must move more than this on either axis to be accepted (≈111 m)
LOCATION_ACCEPT_DELTA_DEG = 0.001

# ────────────────────────────────────────────────────────────────────
#  Presence / Privacy
# ────────────────────────────────────────────────────────────────────
# Device fixes older than this no longer count as "online"
FRESHNESS_WINDOW = timedelta(minutes=10)

# Linear-congruential step used to scatter offline users
LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280

# Full scatter span in degrees; offsets are ±half of this (≈±25 km)
SCATTER_SPAN_DEG = 0.45

# ────────────────────────────────────────────────────────────────────
#  Discovery
# ────────────────────────────────────────────────────────────────────
BROWSE_RESULT_LIMIT = 6
DEFAULT_RADIUS_KM = 50.0

# Zoom level -> discovery radius (km)
MIN_ZOOM, MAX_ZOOM = 1, 20
ZOOM_RADIUS_KM: Dict[int, float] = {
    1: 20000.0, 2: 10000.0, 3: 5000.0, 4: 2500.0, 5: 1200.0,
    6: 800.0, 7: 400.0, 8: 200.0, 9: 100.0, 10: 50.0,
    11: 25.0, 12: 12.0, 13: 6.0, 14: 3.0, 15: 1.5,
    16: 0.8, 17: 0.4, 18: 0.2, 19: 0.1, 20: 0.05,
}

# Zoom estimate used when the viewport bounds are unknown
ESTIMATE_BASE_RADIUS_KM = 50.0
ESTIMATE_BASE_ZOOM = 10
ESTIMATE_MIN_RADIUS_KM = 0.1
ESTIMATE_MAX_RADIUS_KM = 5000.0

# ────────────────────────────────────────────────────────────────────
#  Scan Overlay
# ────────────────────────────────────────────────────────────────────
SCAN_TICK_SECONDS = 0.075
SCAN_STEP_DEG = 1.2
SCAN_TIMEOUT_SECONDS = 20.0
SCAN_SAFETY_MARGIN = 0.8

# Viewer location refresh period
LOCATION_REFRESH_SECONDS = 5 * 60

# ────────────────────────────────────────────────────────────────────
#  Marker colours (online > sailor > local)
# ────────────────────────────────────────────────────────────────────
COLOR_ONLINE = "#10B981"
COLOR_SAILOR = "#1E40AF"
COLOR_LOCAL = "#0D9488"
COLOR_VIEWER = "#FF4444"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}")
        return default


def load_settings(dotenv_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read runtime overrides from the environment (and a .env file if present).

    Returns:
        dict with default_location, directory_url and privacy_salt
    """
    load_dotenv(dotenv_path)
    lat = _env_float("CREW_RADAR_DEFAULT_LAT", DEFAULT_VIEWER_LOCATION[0])
    lon = _env_float("CREW_RADAR_DEFAULT_LON", DEFAULT_VIEWER_LOCATION[1])
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        logger.warning(f"Default location out of range: lat={lat}, lon={lon}")
        lat, lon = DEFAULT_VIEWER_LOCATION
    return {
        "default_location": (lat, lon),
        "directory_url": os.getenv("CREW_RADAR_DIRECTORY_URL") or None,
        "privacy_salt": os.getenv("CREW_RADAR_PRIVACY_SALT") or None,
    }
