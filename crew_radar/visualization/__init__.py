"""
Visualization module for nearby-crew maps.
"""
import os

from .map_surface import FoliumMapSurface, MapSurface, MarkerListeners
from .markers import HoverState, MarkerReconciler
from .scan_overlay import ScanOverlayController


def visualize(results, output_path=None, viewer=None):
    """
    Render a list of NearbyUser results to a standalone HTML map.

    Args:
        results: NearbyUser list from ProximityFilter.apply
        output_path: Optional path to save the HTML file.
                    Defaults to data/output/nearby_map.html
        viewer: Optional (lat, lon) of the viewer, marked in red
    """
    if output_path is None:
        output_path = os.path.join("data", "output", "nearby_map.html")

    surface = FoliumMapSurface(center=viewer) if viewer else FoliumMapSurface()
    if viewer:
        surface.show_viewer(viewer)
    MarkerReconciler(surface).reconcile(results)
    return surface.save(output_path)
