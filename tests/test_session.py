import asyncio
import pytest
from crew_radar.discovery.location import GeolocationUnavailable
from crew_radar.discovery.session import DiscoverySession
from crew_radar.models.config import DEFAULT_VIEWER_LOCATION

MUMBAI = (19.076, 72.8777)


def no_fix():
    raise GeolocationUnavailable("permission denied")


@pytest.fixture
def session(surface, mumbai_bounds, directory_records, now):
    surface.bounds = mumbai_bounds
    s = DiscoverySession(surface, no_fix, clock=lambda: now)
    s.update_directory(directory_records)
    yield s
    s.close()


def test_nothing_shown_before_first_fix(session, surface):
    assert session.results == []
    assert surface.markers == {}
    assert not session.scan.enabled


def test_first_fix_runs_pipeline(session, surface):
    """Accepting a fix filters, draws markers and starts the scan."""
    session.tracker.offer(MUMBAI)

    assert {n.id for n in session.results} == {"user-a", "user-b"}
    assert len(surface.markers) == 2
    assert surface.viewer == MUMBAI
    assert session.scan.enabled
    center, radius, endpoint = surface.scan
    assert center == MUMBAI
    assert radius == pytest.approx(session.scan.radius_km)


def test_filters_rerun_pipeline(session, surface):
    session.tracker.offer(MUMBAI)

    assert [n.id for n in session.set_online_only(True)] == ["user-a"]
    assert len(surface.markers) == 1

    session.set_online_only(False)
    assert [n.id for n in session.set_rank_category("20_30")] == ["user-b"]

    session.set_rank_category("everyone")
    results = session.set_query("chloe")
    assert [n.id for n in results] == ["user-c"]
    assert session.context.search_active

    session.set_query("")
    assert {n.id for n in session.results} == {"user-a", "user-b"}


def test_zoom_changes_radius(session, surface):
    session.tracker.offer(MUMBAI)
    surface.pan(4)
    assert session.radius_km == 2500
    assert "user-c" in {n.id for n in session.results}

    surface.pan(12)
    assert session.radius_km == 12
    assert "user-c" not in {n.id for n in session.results}


def test_reordered_snapshot_keeps_markers(session, directory_records):
    session.tracker.offer(MUMBAI)
    before = session.reconciler.recreations
    session.update_directory(list(reversed(directory_records)))
    assert session.reconciler.recreations == before


def test_toggle_scan(session):
    session.tracker.offer(MUMBAI)
    assert session.scan.enabled
    assert session.toggle_scan() is False
    assert not session.scan.enabled
    assert session.toggle_scan() is True


def test_scan_clears_when_disabled(session, surface):
    session.tracker.offer(MUMBAI)
    session.scan.disable()
    assert surface.scan is None


def test_close_releases_everything(surface, mumbai_bounds, directory_records, now):
    surface.bounds = mumbai_bounds
    session = DiscoverySession(surface, no_fix, clock=lambda: now)
    session.update_directory(directory_records)
    session.tracker.offer(MUMBAI)

    session.close()
    assert surface.markers == {}
    assert surface.scan is None
    assert surface.listeners == []
    assert not session.scan.enabled

    # late events are ignored
    before = list(session.results)
    session.set_query("chloe")
    assert session.results == before
    session.close()


def test_open_falls_back_to_default_location(surface, mumbai_bounds, directory_records, now):
    """Without a device fix the view opens on the default location."""
    surface.bounds = mumbai_bounds

    async def scenario():
        session = DiscoverySession(surface, no_fix, clock=lambda: now)
        session.directory.replace_from_records(directory_records, now=now)
        await session.open()
        assert session.context.location == DEFAULT_VIEWER_LOCATION
        assert session.tracker.running
        assert session.scan.running
        assert {n.id for n in session.results} == {"user-a", "user-b"}
        session.close()
        assert not session.tracker.running
        assert not session.scan.running

    asyncio.run(scenario())


def test_open_asks_for_one_fix(surface, mumbai_bounds):
    calls = []

    def provider():
        calls.append(1)
        return MUMBAI

    async def scenario():
        session = DiscoverySession(surface, provider)
        await session.open()
        await asyncio.sleep(0.05)
        session.close()

    surface.bounds = mumbai_bounds
    asyncio.run(scenario())
    assert len(calls) == 1
