"""
Radar-style scan overlay.

    disabled ──(results appear / toggle on)──▶ enabled ──(20 s / toggle off)──▶ disabled

While enabled, the bearing advances 1.2° every 75 ms and the scan line's far
end is recomputed on the great circle. Only geometry is produced here; colours
and opacity belong to whoever draws it.
"""
import asyncio
import logging
import time
from typing import Callable, List, Optional

from crew_radar.models.config import (
    SCAN_SAFETY_MARGIN,
    SCAN_STEP_DEG,
    SCAN_TICK_SECONDS,
    SCAN_TIMEOUT_SECONDS,
)
from crew_radar.models.presence import LatLon, MapBounds
from crew_radar.utils.geo_utils import destination_point, haversine_distance, zoom_radius_estimate

logger = logging.getLogger(__name__)


def step(angle: float, increment: float = SCAN_STEP_DEG) -> float:
    """Advance the scan bearing one tick, wrapped into [0, 360)."""
    return (angle + increment) % 360


def scan_radius_km(bounds: Optional[MapBounds], zoom: Optional[float]) -> float:
    """
    Largest radius that stays inside the viewport.

    Shortest great-circle distance from the viewport center to the four edges,
    times the safety margin. Without bounds, fall back to the zoom estimate.
    """
    if bounds is None:
        return zoom_radius_estimate(zoom)
    lat, lon = bounds.center
    distances = [haversine_distance(lat, lon, e_lat, e_lon) for e_lat, e_lon in bounds.edge_midpoints()]
    radius = min(distances) * SCAN_SAFETY_MARGIN
    if radius <= 0:
        # degenerate (zero-height/width) bounds
        return zoom_radius_estimate(zoom)
    return radius


class ScanGeometry:
    """What a renderer needs to draw one scan frame."""

    def __init__(self, enabled: bool, center: Optional[LatLon], radius_km: float,
                 angle: float, endpoint: Optional[LatLon]):
        self.enabled = enabled
        self.center = center
        self.radius_km = radius_km
        self.angle = angle
        self.endpoint = endpoint

    def __repr__(self) -> str:
        return (f"ScanGeometry(enabled={self.enabled}, center={self.center}, "
                f"radius_km={self.radius_km:.2f}, angle={self.angle:.1f})")


class ScanOverlayController:
    """Owns the scan state for one map view and its animation task."""

    def __init__(self, tick_seconds: float = SCAN_TICK_SECONDS,
                 timeout_seconds: float = SCAN_TIMEOUT_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.tick_seconds = tick_seconds
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self.enabled = False
        self.angle = 0.0
        self.center: Optional[LatLon] = None
        self.bounds: Optional[MapBounds] = None
        self.zoom: Optional[float] = None
        self.enabled_at: Optional[float] = None
        self._last_count = 0
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Callable[[ScanGeometry], None]] = []

    # ---------- inputs ----------
    def set_center(self, center: Optional[LatLon]) -> None:
        self.center = center

    def set_viewport(self, bounds: Optional[MapBounds], zoom: Optional[float]) -> None:
        self.bounds = bounds
        self.zoom = zoom

    def subscribe(self, listener: Callable[[ScanGeometry], None]) -> None:
        """Listeners get a fresh ScanGeometry on every tick and state change."""
        self._listeners.append(listener)

    # ---------- state machine ----------
    def enable(self) -> None:
        if self.enabled:
            return
        self.enabled = True
        self.enabled_at = self.clock()
        logger.info("Scan overlay enabled")
        self._start_task()
        self._emit()

    def disable(self, reason: str = "toggle") -> None:
        if not self.enabled:
            return
        self.enabled = False
        self.enabled_at = None
        logger.info(f"Scan overlay disabled ({reason})")
        self._stop_task()
        self._emit()

    def toggle(self) -> bool:
        if self.enabled:
            self.disable()
        else:
            self.enable()
        return self.enabled

    def notify_results(self, count: int) -> None:
        """
        Auto-enable when the filter result becomes non-empty.

        Only the empty -> non-empty transition counts, so a scan that timed out
        stays off while the same results keep re-rendering.
        """
        previous, self._last_count = self._last_count, count
        if count > 0 and previous == 0 and not self.enabled:
            self.enable()

    def tick(self) -> Optional[ScanGeometry]:
        """
        One animation frame: timeout check, then advance the bearing.

        Returns the new geometry, or None when the overlay is (now) disabled.
        """
        if not self.enabled:
            return None
        if self.enabled_at is not None and self.clock() - self.enabled_at >= self.timeout_seconds:
            self.disable(reason="timeout")
            return None
        self.angle = step(self.angle)
        geometry = self.geometry()
        self._emit(geometry)
        return geometry

    # ---------- outputs ----------
    @property
    def radius_km(self) -> float:
        return scan_radius_km(self.bounds, self.zoom)

    def geometry(self) -> ScanGeometry:
        center = self.center
        if center is None and self.bounds is not None:
            center = self.bounds.center
        radius = self.radius_km
        endpoint = None
        if center is not None:
            endpoint = destination_point(center[0], center[1], self.angle, radius * 1000)
        return ScanGeometry(self.enabled, center, radius, self.angle, endpoint)

    # ---------- animation task ----------
    async def _run(self) -> None:
        while self.enabled:
            await asyncio.sleep(self.tick_seconds)
            self.tick()

    def _start_task(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop: the caller drives tick() itself
            return
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._run())

    def _stop_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # a timeout inside tick() ends the loop on its own
        if task is not current:
            task.cancel()

    def start(self) -> None:
        """Enable and, inside an event loop, schedule the tick task."""
        self.enable()
        if self.enabled and not self.running:
            self._start_task()

    def stop(self) -> None:
        """Tear down: disable and cancel any running animation."""
        self.disable(reason="teardown")
        self._stop_task()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _emit(self, geometry: Optional[ScanGeometry] = None) -> None:
        if not self._listeners:
            return
        geometry = geometry or self.geometry()
        for listener in list(self._listeners):
            listener(geometry)
