import pytest
import folium
from crew_radar.discovery.proximity import NearbyUser
from crew_radar.visualization import visualize
from crew_radar.visualization.map_surface import (
    SCAN_STYLE_DARK,
    FoliumMapSurface,
    MarkerListeners,
)


@pytest.fixture
def folium_surface(mumbai_bounds):
    return FoliumMapSurface(center=(19.076, 72.8777), zoom=10, bounds=mumbai_bounds)


def test_add_and_remove_marker(folium_surface):
    handle = folium_surface.add_marker((19.08, 72.88), "#10B981", "Arjun Mehta (CE)")
    assert handle in folium_surface.markers
    folium_surface.remove_marker(handle)
    assert handle not in folium_surface.markers
    # removing twice is harmless
    folium_surface.remove_marker(handle)


def test_handles_are_unique(folium_surface):
    handles = {folium_surface.add_marker((0.0, 0.0), "#000000", str(i)) for i in range(5)}
    assert len(handles) == 5


def test_set_viewport_notifies_and_unsubscribes(folium_surface, mumbai_bounds):
    seen = []
    unsubscribe = folium_surface.on_bounds_changed(lambda bounds, zoom: seen.append(zoom))
    folium_surface.set_viewport(12, mumbai_bounds)
    unsubscribe()
    folium_surface.set_viewport(13, mumbai_bounds)
    assert seen == [12]
    assert folium_surface.get_zoom() == 13
    assert folium_surface.get_viewport_bounds() == mumbai_bounds


def test_fire_dispatches_pointer_events(folium_surface):
    events = []
    listeners = MarkerListeners(
        on_hover=lambda pos: events.append(("hover", pos)),
        on_leave=lambda: events.append(("leave", None)),
        on_click=lambda: events.append(("click", None)),
    )
    handle = folium_surface.add_marker((19.08, 72.88), "#10B981", "Arjun", listeners)
    folium_surface.fire(handle, "hover", (5.0, 6.0))
    folium_surface.fire(handle, "leave")
    folium_surface.fire(handle, "click")
    folium_surface.fire(999, "click")
    assert events == [("hover", (5.0, 6.0)), ("leave", None), ("click", None)]


def test_to_folium_builds_layers(folium_surface):
    folium_surface.add_marker((19.08, 72.88), "#10B981", "Arjun Mehta (CE)")
    folium_surface.show_viewer((19.076, 72.8777))
    folium_surface.draw_scan((19.076, 72.8777), 40.0, (19.4, 72.8777), SCAN_STYLE_DARK)

    m = folium_surface.to_folium()
    assert isinstance(m, folium.Map)
    assert m.location == [19.076, 72.8777]
    groups = [c for c in m._children.values() if isinstance(c, folium.FeatureGroup)]
    assert {g.layer_name for g in groups} == {"Nearby Crew", "Scan"}
    layer_controls = [c for c in m._children.values() if isinstance(c, folium.LayerControl)]
    assert len(layer_controls) == 1


def test_clear_scan(folium_surface):
    folium_surface.draw_scan((19.076, 72.8777), 40.0, (19.4, 72.8777))
    assert folium_surface.scan["style"]["line_color"] == "#4B5563"
    folium_surface.clear_scan()
    assert folium_surface.scan is None


def test_save_writes_html(folium_surface, tmp_path):
    folium_surface.add_marker((19.08, 72.88), "#10B981", "Arjun Mehta (CE)")
    path = folium_surface.save(tmp_path / "out" / "map.html")
    assert path.exists()
    assert "Arjun Mehta (CE)" in path.read_text()


def test_visualize(online_user, tmp_path):
    results = [NearbyUser(online_user, (19.08, 72.88), True, 0.5)]
    path = visualize(results, tmp_path / "nearby.html", viewer=(19.076, 72.8777))
    html = path.read_text()
    assert "Arjun Mehta (CE)" in html
    assert "Your Location" in html
