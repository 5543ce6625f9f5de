"""
Marker reconciliation for the nearby-crew map.

Re-creating every marker on each render makes the map flicker, so the
reconciler remembers the id set it last drew and skips the work when the
incoming set is the same (in any order). Only the id set matters: a user whose
distance or rank changed keeps their existing marker.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from crew_radar.models.config import COLOR_LOCAL, COLOR_ONLINE, COLOR_SAILOR
from crew_radar.models.presence import LatLon, UserPresence, UserType
from crew_radar.discovery.proximity import NearbyUser
from crew_radar.utils.rank_utils import format_hover_label
from crew_radar.visualization.map_surface import MapSurface, MarkerListeners, ScreenPosition

logger = logging.getLogger(__name__)

HoverListener = Callable[[Optional[UserPresence], Optional[ScreenPosition]], None]
ClickListener = Callable[[str], None]


def marker_key(ids: Iterable[str]) -> str:
    """Order-independent key for a set of user ids."""
    return ",".join(sorted(str(i) for i in ids))


def marker_color(nearby: NearbyUser) -> str:
    """online > sailor > local"""
    if nearby.online:
        return COLOR_ONLINE
    if nearby.user.user_type == UserType.SAILOR:
        return COLOR_SAILOR
    return COLOR_LOCAL


class HoverState:
    """
    Single-slot observer for pointer interaction.

    At most one user is hovered at a time; hover listeners get
    ``(user, screen_position)`` on enter and ``(None, None)`` on leave.
    Click listeners only receive the user id, navigation is up to them.
    """

    def __init__(self):
        self.user: Optional[UserPresence] = None
        self.position: Optional[ScreenPosition] = None
        self._hover_listeners: List[HoverListener] = []
        self._click_listeners: List[ClickListener] = []

    def subscribe_hover(self, listener: HoverListener) -> None:
        self._hover_listeners.append(listener)

    def subscribe_click(self, listener: ClickListener) -> None:
        self._click_listeners.append(listener)

    def enter(self, user: UserPresence, position: ScreenPosition) -> None:
        self.user = user
        self.position = position
        for listener in list(self._hover_listeners):
            listener(user, position)

    def leave(self, user_id: Optional[str] = None) -> None:
        """Clear the slot; a leave from a marker that is no longer hovered is ignored."""
        if self.user is None:
            return
        if user_id is not None and self.user.id != user_id:
            return
        self.user = None
        self.position = None
        for listener in list(self._hover_listeners):
            listener(None, None)

    def click(self, user_id: str) -> None:
        for listener in list(self._click_listeners):
            listener(user_id)


class MarkerReconciler:
    """Owns the rendered marker set for one map view."""

    def __init__(self, surface: MapSurface, hover: Optional[HoverState] = None):
        self.surface = surface
        self.hover = hover or HoverState()
        self._key: Optional[str] = None
        self._handles: Dict[str, Tuple[Any, LatLon]] = {}
        self.recreations = 0

    @property
    def rendered(self) -> Dict[str, LatLon]:
        """user id -> plotted position currently on the map"""
        return {user_id: pos for user_id, (_, pos) in self._handles.items()}

    def reconcile(self, nearby: Iterable[NearbyUser]) -> bool:
        """
        Bring the surface in line with ``nearby``.

        Returns:
            True if markers were recreated, False for the no-op path
        """
        nearby = list(nearby)
        key = marker_key(n.id for n in nearby)
        if key == self._key and self._handles:
            return False

        disposed = bool(self._handles)
        self._dispose_all()
        for item in nearby:
            if item.id in self._handles:
                continue
            handle = self.surface.add_marker(
                item.plotted,
                marker_color(item),
                format_hover_label(item.user.full_name, item.user.rank),
                self._listeners_for(item.user),
            )
            self._handles[item.id] = (handle, item.plotted)

        self._key = key
        if not (disposed or self._handles):
            # empty before and after
            return False
        self.recreations += 1
        logger.debug(f"Rendered {len(self._handles)} markers")
        return True

    def clear(self) -> None:
        """Dispose every marker; used when the view is torn down."""
        self._dispose_all()
        self._key = None

    def _dispose_all(self) -> None:
        for handle, _ in self._handles.values():
            self.surface.remove_marker(handle)
        self._handles.clear()
        if self.hover.user is not None:
            self.hover.leave()

    def _listeners_for(self, user: UserPresence) -> MarkerListeners:
        return MarkerListeners(
            on_hover=lambda pos: self.hover.enter(user, pos),
            on_leave=lambda: self.hover.leave(user.id),
            on_click=lambda: self.hover.click(user.id),
        )
