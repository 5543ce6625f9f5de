import math
from typing import Optional, Tuple

from crew_radar.models.config import (
    EARTH_RADIUS_KM,
    EARTH_RADIUS_M,
    ZOOM_RADIUS_KM,
    MIN_ZOOM,
    MAX_ZOOM,
    DEFAULT_RADIUS_KM,
    ESTIMATE_BASE_RADIUS_KM,
    ESTIMATE_BASE_ZOOM,
    ESTIMATE_MIN_RADIUS_KM,
    ESTIMATE_MAX_RADIUS_KM,
)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth using the Haversine formula.
    Return distance in kilometers.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)
    a = math.sin(delta_phi/2)**2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the bearing (heading) from point (lat1, lon1) to (lat2, lon2).
    Bearing is returned in degrees from North (0-360, clockwise).
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing_rad = math.atan2(y, x)
    return (math.degrees(bearing_rad) + 360) % 360


def destination_point(lat: float, lon: float, bearing: float, distance_m: float) -> Tuple[float, float]:
    """
    Move a point from the given lat, lon by a distance (metres) along a bearing (deg).
    Returns the new latitude and longitude, longitude wrapped to [-180, 180).
    """
    lat1 = math.radians(lat)
    lon1 = math.radians(lon)
    bearing_rad = math.radians(bearing)
    frac = distance_m / EARTH_RADIUS_M
    lat2 = math.asin(math.sin(lat1) * math.cos(frac) + math.cos(lat1) * math.sin(frac) * math.cos(bearing_rad))
    lon2 = lon1 + math.atan2(math.sin(bearing_rad) * math.sin(frac) * math.cos(lat1), math.cos(frac) - math.sin(lat1) * math.sin(lat2))
    new_lat = math.degrees(lat2)
    new_lon = (math.degrees(lon2) + 180) % 360 - 180
    return new_lat, new_lon


def clamp_zoom(zoom: float) -> float:
    """Clamp a map zoom level into the supported [1, 20] range."""
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


def zoom_to_radius_km(zoom: float) -> float:
    """
    Discovery radius for a zoom level, from the fixed zoom table.

    Zoom is clamped first; levels that are not in the table (fractional zoom)
    fall back to the default 50 km.
    """
    return ZOOM_RADIUS_KM.get(clamp_zoom(zoom), DEFAULT_RADIUS_KM)


def zoom_radius_estimate(zoom: Optional[float]) -> float:
    """Screen-edge radius estimate (km) used when the viewport bounds are unknown."""
    if zoom is None:
        return ESTIMATE_BASE_RADIUS_KM
    radius = ESTIMATE_BASE_RADIUS_KM * 2 ** (ESTIMATE_BASE_ZOOM - clamp_zoom(zoom))
    return min(max(radius, ESTIMATE_MIN_RADIUS_KM), ESTIMATE_MAX_RADIUS_KM)


def is_valid_coordinate(lat, lon) -> bool:
    """True for finite, numeric, in-range latitude/longitude pairs."""
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0
