"""
Presence model: who a directory user is, where they declared themselves,
and where their device last reported them.
"""
import enum
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from crew_radar.models.config import FRESHNESS_WINDOW
from crew_radar.utils.geo_utils import is_valid_coordinate

logger = logging.getLogger(__name__)

LatLon = Tuple[float, float]


class UserType(enum.Enum):
    """Directory user category."""
    SAILOR = "sailor"
    LOCAL = "local"


def _clean_text(value: Any) -> Optional[str]:
    """Blank strings, None and pandas NaN all collapse to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    return text or None


def _optional_float(value: Any) -> Optional[float]:
    text = _clean_text(value)
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a feed timestamp into an aware UTC datetime, or None."""
    if value is None or value == "":
        return None
    try:
        ts = pd.to_datetime(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid timestamp {value!r}, ignoring")
        return None
    if pd.isna(ts):
        return None
    ts = ts.to_pydatetime()
    return _as_utc(ts)


def _as_utc(ts: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC."""
    if ts is not None and ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class UserPresence:
    """One directory entry as seen by the discovery engine."""

    def __init__(self, user_id: str, full_name: str, latitude: float, longitude: float,
                 user_type: UserType = UserType.SAILOR,
                 rank: Optional[str] = None,
                 ship_name: Optional[str] = None,
                 company: Optional[str] = None,
                 city: Optional[str] = None,
                 country: Optional[str] = None,
                 device_latitude: Optional[float] = None,
                 device_longitude: Optional[float] = None,
                 location_updated_at: Optional[datetime] = None):
        self.id = user_id
        self.full_name = full_name
        self.user_type = user_type
        self.rank = rank
        self.ship_name = ship_name
        self.company = company
        self.city = city
        self.country = country
        self.latitude = latitude
        self.longitude = longitude
        self.device_latitude = device_latitude
        self.device_longitude = device_longitude
        self.location_updated_at = _as_utc(location_updated_at)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "UserPresence":
        """
        Build a presence from a directory feed record.

        Accepts both snake_case and the feed's camelCase keys.

        Raises:
            ValueError: If the id is missing or the canonical location is invalid
        """
        def pick(*keys):
            for key in keys:
                if key in record:
                    value = _clean_text(record[key])
                    if value is not None:
                        return record[key]
            return None

        user_id = _clean_text(pick("id", "user_id", "userId"))
        if user_id is None:
            raise ValueError("Record is missing a user id")

        lat = pick("latitude", "lat")
        lon = pick("longitude", "lon", "lng")
        if not is_valid_coordinate(lat, lon):
            raise ValueError(f"Invalid canonical location for {user_id}: lat={lat}, lon={lon}")

        device_lat = _optional_float(pick("device_latitude", "deviceLatitude"))
        device_lon = _optional_float(pick("device_longitude", "deviceLongitude"))
        if device_lat is not None and device_lon is not None and not is_valid_coordinate(device_lat, device_lon):
            logger.warning(f"Dropping invalid device fix for {user_id}: lat={device_lat}, lon={device_lon}")
            device_lat = device_lon = None

        raw_type = (_clean_text(pick("user_type", "userType")) or "sailor").lower()
        user_type = UserType.LOCAL if raw_type == UserType.LOCAL.value else UserType.SAILOR

        return cls(
            user_id=user_id,
            full_name=_clean_text(pick("full_name", "fullName", "name")) or user_id,
            latitude=float(lat),
            longitude=float(lon),
            user_type=user_type,
            rank=_clean_text(pick("rank", "maritime_rank", "maritimeRank")),
            ship_name=_clean_text(pick("ship_name", "shipName")),
            company=_clean_text(pick("company")),
            city=_clean_text(pick("city", "port")),
            country=_clean_text(pick("country")),
            device_latitude=device_lat,
            device_longitude=device_lon,
            location_updated_at=parse_timestamp(pick("location_updated_at", "locationUpdatedAt")),
        )

    @property
    def canonical_location(self) -> LatLon:
        return self.latitude, self.longitude

    @property
    def device_location(self) -> Optional[LatLon]:
        if self.device_latitude is None or self.device_longitude is None:
            return None
        return self.device_latitude, self.device_longitude

    def is_online(self, now: Optional[datetime] = None, freshness=FRESHNESS_WINDOW) -> bool:
        """Online = device fix present and updated within the freshness window."""
        if self.device_location is None or self.location_updated_at is None:
            return False
        if not is_valid_coordinate(*self.device_location):
            return False
        now = _as_utc(now) or datetime.now(timezone.utc)
        return now - self.location_updated_at < freshness

    def __repr__(self) -> str:
        return f"UserPresence({self.id!r}, {self.full_name!r})"

    def __str__(self) -> str:
        rank = f", {self.rank}" if self.rank else ""
        place = ", ".join(p for p in (self.city, self.country) if p) or "unknown port"
        return f"{self.full_name}{rank} ({place})"


class MapBounds:
    """Visible geographic rectangle of the map surface."""

    def __init__(self, north: float, south: float, east: float, west: float):
        if south > north:
            raise ValueError(f"South edge {south} is above north edge {north}")
        self.north = north
        self.south = south
        self.east = east
        self.west = west

    @property
    def center(self) -> LatLon:
        lat = (self.north + self.south) / 2
        # Handle viewports crossing the antimeridian
        east = self.east if self.east >= self.west else self.east + 360
        lon = (self.west + east) / 2
        lon = (lon + 180) % 360 - 180
        return lat, lon

    def edge_midpoints(self) -> Tuple[LatLon, LatLon, LatLon, LatLon]:
        """Points on the north, south, east and west edges level with the center."""
        lat, lon = self.center
        return (self.north, lon), (self.south, lon), (lat, self.east), (lat, self.west)

    def __eq__(self, other) -> bool:
        if not isinstance(other, MapBounds):
            return NotImplemented
        return (self.north, self.south, self.east, self.west) == (other.north, other.south, other.east, other.west)

    def __repr__(self) -> str:
        return f"MapBounds(north={self.north}, south={self.south}, east={self.east}, west={self.west})"


class ViewerContext:
    """Viewer-side state for one map view: last accepted fix, filters, viewport."""

    def __init__(self, location: Optional[LatLon] = None, query: str = "",
                 rank_category: str = "everyone", online_only: bool = False,
                 zoom: float = 10, bounds: Optional[MapBounds] = None):
        self.location = location
        self.query = query
        self.rank_category = rank_category
        self.online_only = online_only
        self.zoom = zoom
        self.bounds = bounds

    @property
    def search_active(self) -> bool:
        return bool(self.query and self.query.strip())
