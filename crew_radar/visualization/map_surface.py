"""
Map rendering surface.

The discovery engine only needs a handful of capabilities from a mapping SDK:
add/remove a marker, read the viewport bounds and zoom, and hear about
viewport changes. ``MapSurface`` captures exactly that (plus drawing the scan
overlay); ``FoliumMapSurface`` implements it on folium and writes a static
HTML snapshot.
"""
import abc
import itertools
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import folium

from crew_radar.models.config import COLOR_VIEWER, DEFAULT_VIEWER_LOCATION
from crew_radar.models.presence import LatLon, MapBounds

logger = logging.getLogger(__name__)

BoundsListener = Callable[[Optional[MapBounds], float], None]
ScreenPosition = Tuple[float, float]

# Default scan styling (light map theme); callers pick per theme
SCAN_STYLE_LIGHT = {"circle_color": "#4ade80", "circle_opacity": 0.6,
                    "line_color": "#4B5563", "line_opacity": 0.8}
SCAN_STYLE_DARK = {"circle_color": "#22c55e", "circle_opacity": 0.8,
                   "line_color": "#e5e7eb", "line_opacity": 0.9}


class MarkerListeners:
    """Callbacks a marker forwards its pointer events to."""

    def __init__(self, on_hover: Optional[Callable[[ScreenPosition], None]] = None,
                 on_leave: Optional[Callable[[], None]] = None,
                 on_click: Optional[Callable[[], None]] = None):
        self.on_hover = on_hover
        self.on_leave = on_leave
        self.on_click = on_click


class MapSurface(abc.ABC):
    """Minimal capability surface the discovery core depends on."""

    @abc.abstractmethod
    def add_marker(self, position: LatLon, color: str, label: str,
                   listeners: Optional[MarkerListeners] = None) -> Any:
        """Place a marker and return an opaque handle."""

    @abc.abstractmethod
    def remove_marker(self, handle: Any) -> None:
        """Dispose a marker previously returned by add_marker."""

    @abc.abstractmethod
    def get_viewport_bounds(self) -> Optional[MapBounds]:
        """Current visible bounds, or None while the surface has no layout."""

    @abc.abstractmethod
    def get_zoom(self) -> float:
        """Current zoom level."""

    @abc.abstractmethod
    def on_bounds_changed(self, listener: BoundsListener) -> Callable[[], None]:
        """Subscribe to pan/zoom; returns an unsubscribe callable."""

    def draw_scan(self, center: LatLon, radius_km: float, endpoint: LatLon,
                  style: Optional[Dict[str, Any]] = None) -> None:
        """Draw or update the scan circle and line. Optional capability."""

    def clear_scan(self) -> None:
        """Remove the scan overlay. Optional capability."""

    def show_viewer(self, location: LatLon) -> None:
        """Mark the viewer's own position. Optional capability."""


class FoliumMapSurface(MapSurface):
    """folium-backed surface; events are fed in via ``set_viewport`` and ``fire``."""

    def __init__(self, center: LatLon = DEFAULT_VIEWER_LOCATION, zoom: float = 10,
                 bounds: Optional[MapBounds] = None, tiles: str = "OpenStreetMap"):
        self.center = center
        self.zoom = zoom
        self.bounds = bounds
        self.tiles = tiles
        self.viewer_location: Optional[LatLon] = None
        self.markers: Dict[int, Dict[str, Any]] = {}
        self.scan: Optional[Dict[str, Any]] = None
        self._ids = itertools.count(1)
        self._listeners: List[BoundsListener] = []

    # ---------- MapSurface ----------
    def add_marker(self, position: LatLon, color: str, label: str,
                   listeners: Optional[MarkerListeners] = None) -> int:
        handle = next(self._ids)
        self.markers[handle] = {
            "position": position,
            "color": color,
            "label": label,
            "listeners": listeners or MarkerListeners(),
        }
        logger.debug(f"Marker {handle} added for {label} at {position}")
        return handle

    def remove_marker(self, handle: int) -> None:
        if self.markers.pop(handle, None) is None:
            logger.debug(f"Marker {handle} already removed")

    def get_viewport_bounds(self) -> Optional[MapBounds]:
        return self.bounds

    def get_zoom(self) -> float:
        return self.zoom

    def on_bounds_changed(self, listener: BoundsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def draw_scan(self, center: LatLon, radius_km: float, endpoint: LatLon,
                  style: Optional[Dict[str, Any]] = None) -> None:
        self.scan = {"center": center, "radius_km": radius_km, "endpoint": endpoint,
                     "style": {**SCAN_STYLE_LIGHT, **(style or {})}}

    def clear_scan(self) -> None:
        self.scan = None

    def show_viewer(self, location: LatLon) -> None:
        self.viewer_location = location

    # ---------- event injection ----------
    def set_viewport(self, zoom: float, bounds: Optional[MapBounds] = None) -> None:
        """Pan/zoom event: store the viewport and notify subscribers."""
        self.zoom = zoom
        self.bounds = bounds
        if bounds is not None:
            self.center = bounds.center
        for listener in list(self._listeners):
            listener(bounds, zoom)

    def fire(self, handle: int, event: str, screen_position: ScreenPosition = (0.0, 0.0)) -> None:
        """Dispatch a pointer event ('hover', 'leave', 'click') to a marker."""
        marker = self.markers.get(handle)
        if marker is None:
            logger.warning(f"Event {event!r} for unknown marker {handle}")
            return
        listeners: MarkerListeners = marker["listeners"]
        if event == "hover" and listeners.on_hover:
            listeners.on_hover(screen_position)
        elif event == "leave" and listeners.on_leave:
            listeners.on_leave()
        elif event == "click" and listeners.on_click:
            listeners.on_click()

    # ---------- rendering ----------
    def to_folium(self) -> folium.Map:
        """Build a folium map from the current markers and scan overlay."""
        m = folium.Map(location=list(self.center), zoom_start=int(round(self.zoom)), tiles=self.tiles)

        crew_layer = folium.FeatureGroup(name="Nearby Crew")
        for marker in self.markers.values():
            lat, lon = marker["position"]
            folium.CircleMarker(
                location=[lat, lon],
                radius=10,
                color="#ffffff",
                weight=2,
                fill=True,
                fill_color=marker["color"],
                fill_opacity=1.0,
                tooltip=marker["label"],
                popup=folium.Popup(f"<b>{marker['label']}</b>", max_width=300),
            ).add_to(crew_layer)
        crew_layer.add_to(m)

        if self.viewer_location is not None:
            folium.CircleMarker(
                location=list(self.viewer_location),
                radius=4,
                color="#ffffff",
                weight=1,
                fill=True,
                fill_color=COLOR_VIEWER,
                fill_opacity=1.0,
                tooltip="Your Location",
            ).add_to(m)

        if self.scan is not None:
            style = self.scan["style"]
            scan_layer = folium.FeatureGroup(name="Scan")
            folium.Circle(
                location=list(self.scan["center"]),
                radius=self.scan["radius_km"] * 1000,  # km -> m
                color=style["circle_color"],
                opacity=style["circle_opacity"],
                weight=2,
                fill=False,
            ).add_to(scan_layer)
            folium.PolyLine(
                [list(self.scan["center"]), list(self.scan["endpoint"])],
                color=style["line_color"],
                opacity=style["line_opacity"],
                weight=3,
            ).add_to(scan_layer)
            scan_layer.add_to(m)

        folium.LayerControl().add_to(m)
        return m

    def save(self, output_path: Union[str, Path]) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.to_folium().save(str(output_path))
        logger.info(f"Map with {len(self.markers)} markers saved to {output_path}")
        return output_path
