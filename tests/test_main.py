import pytest
import pandas as pd
from crew_radar.main import main, results_frame
from crew_radar.discovery.proximity import NearbyUser


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer .env overrides out of CLI runs."""
    for name in ("CREW_RADAR_DIRECTORY_URL", "CREW_RADAR_PRIVACY_SALT",
                 "CREW_RADAR_DEFAULT_LAT", "CREW_RADAR_DEFAULT_LON"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def directory_csv(tmp_path):
    path = tmp_path / "directory.csv"
    path.write_text(
        "id,fullName,userType,rank,shipName,city,country,latitude,longitude\n"
        "user-a,Arjun Mehta,sailor,Chief Engineer,MV Sagar,Mumbai,India,19.076,72.8777\n"
        "user-b,Bilal Khan,sailor,Second Officer,MT Horizon,Mumbai,India,19.076,72.8777\n"
        "user-c,Chloe Fernandes,local,Cook,,Dubai,UAE,25.2048,55.2708\n"
    )
    return path


def _run(directory_csv, tmp_path, *extra):
    output = tmp_path / "nearby_map.html"
    argv = ["--input", str(directory_csv), "--output", str(output),
            "--lat", "19.076", "--lon", "72.8777", *extra]
    return main(argv), output


def test_main_browse(directory_csv, tmp_path):
    """Mumbai viewer at zoom 10 sees both Mumbai sailors and gets a map."""
    frame, output = _run(directory_csv, tmp_path)
    assert isinstance(frame, pd.DataFrame)
    assert set(frame["id"]) == {"user-a", "user-b"}
    assert set(frame["rank"]) == {"CE", "2/O"}
    assert (frame["distance_km"] <= 50).all()
    assert output.exists()
    assert "Arjun Mehta (CE)" in output.read_text()


def test_main_search(directory_csv, tmp_path):
    frame, _ = _run(directory_csv, tmp_path, "--query", "dubai")
    assert list(frame["id"]) == ["user-c"]


def test_main_online_only(directory_csv, tmp_path):
    """Nobody in the CSV has a device fix."""
    frame, output = _run(directory_csv, tmp_path, "--online-only")
    assert frame.empty
    assert output.exists()


def test_main_rank_filter(directory_csv, tmp_path):
    frame, _ = _run(directory_csv, tmp_path, "--rank", "ce_2e")
    assert list(frame["id"]) == ["user-a"]


def test_main_without_position_uses_default(directory_csv, tmp_path):
    output = tmp_path / "map.html"
    frame = main(["--input", str(directory_csv), "--output", str(output)])
    assert set(frame["id"]) == {"user-a", "user-b"}


def test_main_ignores_inverted_bounds(directory_csv, tmp_path):
    frame, _ = _run(directory_csv, tmp_path, "--bounds", "18", "19", "73", "72", "--theme", "dark")
    assert len(frame) == 2


def test_main_missing_input(tmp_path):
    assert main(["--input", str(tmp_path / "missing.csv"), "--output", str(tmp_path / "m.html")]) is None


def test_results_frame(online_user):
    frame = results_frame([NearbyUser(online_user, (19.08, 72.88), True, 0.4567)])
    row = frame.iloc[0]
    assert row["name"] == "Arjun Mehta"
    assert row["rank"] == "CE"
    assert row["distance_km"] == 0.46
    assert bool(row["online"])
    assert results_frame([]).empty
