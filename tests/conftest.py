import pytest
from datetime import datetime, timedelta, timezone

from crew_radar.models.presence import MapBounds, UserPresence, UserType
from crew_radar.visualization.map_surface import MapSurface, MarkerListeners

MUMBAI = (19.076, 72.8777)
DUBAI = (25.2048, 55.2708)


@pytest.fixture
def now():
    """Fixed reference time for presence checks."""
    return datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def online_user(now):
    """Sailor with a device fix two minutes old, ~1 km from central Mumbai."""
    return UserPresence(
        "user-a", "Arjun Mehta", MUMBAI[0], MUMBAI[1],
        user_type=UserType.SAILOR,
        rank="Chief Engineer",
        ship_name="MV Sagar",
        city="Mumbai",
        country="India",
        device_latitude=19.08,
        device_longitude=72.88,
        location_updated_at=now - timedelta(minutes=2),
    )


@pytest.fixture
def offline_user():
    """Sailor registered in Mumbai with no device fix."""
    return UserPresence(
        "user-b", "Bilal Khan", MUMBAI[0], MUMBAI[1],
        user_type=UserType.SAILOR,
        rank="Second Officer",
        ship_name="MT Horizon",
        company="Blue Sea Shipping",
        city="Mumbai",
        country="India",
    )


@pytest.fixture
def local_user():
    """Port local in Dubai, far from Mumbai."""
    return UserPresence(
        "user-c", "Chloe Fernandes", DUBAI[0], DUBAI[1],
        user_type=UserType.LOCAL,
        rank="Cook",
        city="Dubai",
        country="UAE",
    )


@pytest.fixture
def directory_records(now):
    """Feed rows in the directory service's camelCase shape."""
    return [
        {
            "id": "user-a",
            "fullName": "Arjun Mehta",
            "userType": "sailor",
            "rank": "chief_engineer",
            "shipName": "MV Sagar",
            "city": "Mumbai",
            "country": "India",
            "latitude": MUMBAI[0],
            "longitude": MUMBAI[1],
            "deviceLatitude": 19.08,
            "deviceLongitude": 72.88,
            "locationUpdatedAt": (now - timedelta(minutes=2)).isoformat(),
        },
        {
            "id": "user-b",
            "fullName": "Bilal Khan",
            "userType": "sailor",
            "rank": "Second Officer",
            "city": "Mumbai",
            "country": "India",
            "latitude": MUMBAI[0],
            "longitude": MUMBAI[1],
        },
        {
            "id": "user-c",
            "fullName": "Chloe Fernandes",
            "userType": "local",
            "rank": "Cook",
            "city": "Dubai",
            "country": "UAE",
            "latitude": DUBAI[0],
            "longitude": DUBAI[1],
        },
    ]


@pytest.fixture
def mumbai_bounds():
    """Viewport roughly 1° tall and wide around Mumbai."""
    return MapBounds(north=19.576, south=18.576, east=73.3777, west=72.3777)


class RecordingSurface(MapSurface):
    """In-memory MapSurface that records every call."""

    def __init__(self, zoom=10, bounds=None):
        self.zoom = zoom
        self.bounds = bounds
        self.markers = {}
        self.added = []
        self.removed = []
        self.scan = None
        self.viewer = None
        self.listeners = []
        self._next = 0

    def add_marker(self, position, color, label, listeners=None):
        self._next += 1
        self.markers[self._next] = (position, color, label, listeners or MarkerListeners())
        self.added.append(self._next)
        return self._next

    def remove_marker(self, handle):
        self.markers.pop(handle, None)
        self.removed.append(handle)

    def get_viewport_bounds(self):
        return self.bounds

    def get_zoom(self):
        return self.zoom

    def on_bounds_changed(self, listener):
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)

    def draw_scan(self, center, radius_km, endpoint, style=None):
        self.scan = (center, radius_km, endpoint)

    def clear_scan(self):
        self.scan = None

    def show_viewer(self, location):
        self.viewer = location

    def pan(self, zoom, bounds=None):
        self.zoom = zoom
        self.bounds = bounds
        for listener in list(self.listeners):
            listener(bounds, zoom)

    def handle_for(self, label_prefix):
        for handle, (_, _, label, _) in self.markers.items():
            if label.startswith(label_prefix):
                return handle
        return None


@pytest.fixture
def surface():
    return RecordingSurface()
