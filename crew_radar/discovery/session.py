"""
One live "who's nearby" map view.

Wires the directory snapshot, the viewer's location, the filters and the map
surface together and re-runs the whole pipeline inline on every relevant
event (new snapshot, accepted fix, filter change, pan/zoom).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from crew_radar.directory import CrewDirectory
from crew_radar.models.config import DEFAULT_VIEWER_LOCATION
from crew_radar.models.presence import LatLon, MapBounds, ViewerContext
from crew_radar.discovery.location import LocationProvider, ViewerLocationTracker
from crew_radar.discovery.privacy import LocationPrivacyResolver
from crew_radar.discovery.proximity import NearbyUser, ProximityFilter
from crew_radar.utils.geo_utils import zoom_to_radius_km
from crew_radar.visualization.map_surface import MapSurface
from crew_radar.visualization.markers import HoverState, MarkerReconciler
from crew_radar.visualization.scan_overlay import ScanGeometry, ScanOverlayController

logger = logging.getLogger(__name__)


class DiscoverySession:
    """Owns every piece of per-view state; ``close()`` releases all of it."""

    def __init__(self, surface: MapSurface,
                 location_provider: LocationProvider,
                 directory: Optional[CrewDirectory] = None,
                 resolver: Optional[LocationPrivacyResolver] = None,
                 scan: Optional[ScanOverlayController] = None,
                 default_location: LatLon = DEFAULT_VIEWER_LOCATION,
                 scan_style: Optional[Dict[str, Any]] = None,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.surface = surface
        self.directory = directory or CrewDirectory()
        self.filter = ProximityFilter(resolver)
        self.hover = HoverState()
        self.reconciler = MarkerReconciler(surface, self.hover)
        self.scan = scan or ScanOverlayController()
        self.scan_style = scan_style
        self.clock = clock
        self.context = ViewerContext(zoom=surface.get_zoom(), bounds=surface.get_viewport_bounds())
        self.results: List[NearbyUser] = []
        self.tracker = ViewerLocationTracker(location_provider, on_change=self._on_location,
                                             default_location=default_location)

        self.scan.set_viewport(self.context.bounds, self.context.zoom)
        self.scan.subscribe(self._on_scan)
        self._unsubscribe = surface.on_bounds_changed(self._on_bounds)
        self._closed = False

    # ---------- lifecycle ----------
    async def open(self) -> None:
        """Take the start-up fix, then keep refreshing it on the running loop."""
        await self.tracker.refresh()
        self.tracker.start()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.tracker.stop()
        self.scan.stop()
        self.surface.clear_scan()
        self.reconciler.clear()
        self._unsubscribe()
        logger.info("Discovery session closed")

    # ---------- inputs ----------
    def update_directory(self, records: Iterable[dict]) -> List[NearbyUser]:
        self.directory.replace_from_records(records)
        return self.refresh()

    def set_query(self, query: str) -> List[NearbyUser]:
        self.context.query = query or ""
        return self.refresh()

    def set_rank_category(self, category: str) -> List[NearbyUser]:
        self.context.rank_category = category
        return self.refresh()

    def set_online_only(self, online_only: bool) -> List[NearbyUser]:
        self.context.online_only = bool(online_only)
        return self.refresh()

    def toggle_scan(self) -> bool:
        return self.scan.toggle()

    # ---------- pipeline ----------
    @property
    def radius_km(self) -> float:
        return zoom_to_radius_km(self.context.zoom)

    def refresh(self) -> List[NearbyUser]:
        """Run filter -> markers -> scan auto-enable for the current state."""
        if self._closed:
            return self.results
        ctx = self.context
        self.results = self.filter.apply(
            self.directory.get_all(),
            ctx.location,
            self.radius_km,
            online_only=ctx.online_only,
            rank_category=ctx.rank_category,
            query=ctx.query,
            now=self.clock(),
        )
        self.reconciler.reconcile(self.results)
        self.scan.notify_results(len(self.results))
        return self.results

    def _on_location(self, location: LatLon) -> None:
        self.context.location = location
        self.scan.set_center(location)
        self.surface.show_viewer(location)
        self.refresh()

    def _on_bounds(self, bounds: Optional[MapBounds], zoom: float) -> None:
        self.context.bounds = bounds
        self.context.zoom = zoom
        self.scan.set_viewport(bounds, zoom)
        self.refresh()

    def _on_scan(self, geometry: ScanGeometry) -> None:
        if not geometry.enabled or geometry.center is None:
            self.surface.clear_scan()
            return
        self.surface.draw_scan(geometry.center, geometry.radius_km, geometry.endpoint, self.scan_style)
