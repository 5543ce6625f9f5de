"""
Viewer location tracking.

Polls the device geolocation provider once at start-up and then every five
minutes. A new fix is only accepted when it moved more than
LOCATION_ACCEPT_DELTA_DEG on either axis, which damps GPS jitter and avoids
re-running the discovery pipeline for nothing.
"""
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from crew_radar.models.config import (
    DEFAULT_VIEWER_LOCATION,
    LOCATION_ACCEPT_DELTA_DEG,
    LOCATION_REFRESH_SECONDS,
)
from crew_radar.models.presence import LatLon
from crew_radar.utils.geo_utils import is_valid_coordinate

logger = logging.getLogger(__name__)

LocationProvider = Callable[[], Union[Optional[LatLon], Awaitable[Optional[LatLon]]]]


class GeolocationUnavailable(RuntimeError):
    """Raised by providers when permission is denied or no fix can be obtained."""


def fix_moved(previous: Optional[LatLon], fix: LatLon,
              threshold: float = LOCATION_ACCEPT_DELTA_DEG) -> bool:
    """True when there is no previous fix or either axis moved beyond the threshold."""
    if previous is None:
        return True
    return abs(fix[0] - previous[0]) > threshold or abs(fix[1] - previous[1]) > threshold


class ViewerLocationTracker:
    """Holds the viewer's last accepted fix and keeps it fresh."""

    def __init__(self, provider: LocationProvider,
                 on_change: Optional[Callable[[LatLon], None]] = None,
                 default_location: LatLon = DEFAULT_VIEWER_LOCATION,
                 interval: float = LOCATION_REFRESH_SECONDS,
                 threshold: float = LOCATION_ACCEPT_DELTA_DEG):
        self.provider = provider
        self.on_change = on_change
        self.default_location = default_location
        self.interval = interval
        self.threshold = threshold
        self.location: Optional[LatLon] = None
        self._task: Optional[asyncio.Task] = None

    def offer(self, fix: LatLon) -> bool:
        """
        Offer a fix; returns True if it replaced the last accepted one.

        Accepted fixes are forwarded to ``on_change``.
        """
        if not fix_moved(self.location, fix, self.threshold):
            logger.debug(f"Discarding jitter fix {fix}")
            return False
        self.location = (float(fix[0]), float(fix[1]))
        logger.info(f"Accepted viewer fix {self.location}")
        if self.on_change is not None:
            self.on_change(self.location)
        return True

    async def refresh(self) -> bool:
        """Ask the provider for a fix once; falls back to the default before the first fix."""
        try:
            fix = self.provider()
            if inspect.isawaitable(fix):
                fix = await fix
            if fix is None or not is_valid_coordinate(*fix):
                raise GeolocationUnavailable(f"Provider returned no usable fix: {fix!r}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Geolocation failed: {e}")
            if self.location is not None:
                # keep the last accepted fix
                return False
            logger.info(f"Falling back to default location {self.default_location}")
            return self.offer(self.default_location)
        return self.offer(fix)

    async def _run(self) -> None:
        # a fix taken before start() counts as the start-up request
        if self.location is None:
            await self.refresh()
        while True:
            await asyncio.sleep(self.interval)
            await self.refresh()

    def start(self) -> asyncio.Task:
        """Start periodic refresh on the running event loop (idempotent)."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.info(f"Viewer location refresh started (every {self.interval}s)")
        return self._task

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.info("Viewer location refresh stopped")
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
