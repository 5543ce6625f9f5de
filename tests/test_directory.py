import pytest
from datetime import timedelta
from crew_radar.directory import CrewDirectory


@pytest.fixture
def directory(directory_records, now):
    d = CrewDirectory()
    d.replace_from_records(directory_records, now=now)
    return d


def test_directory_initialization(online_user, offline_user):
    """Directory built from users keeps them by id."""
    directory = CrewDirectory([online_user, offline_user])
    assert len(directory) == 2
    assert directory["user-a"] is online_user
    assert "user-b" in directory
    assert "user-z" not in directory


def test_directory_missing_user():
    with pytest.raises(KeyError):
        CrewDirectory()["nobody"]


def test_replace_from_records(directory):
    assert len(directory) == 3
    assert [u.id for u in directory.get_all()] == ["user-a", "user-b", "user-c"]


def test_replace_skips_bad_records(directory_records, now):
    """Invalid rows are skipped without aborting the snapshot."""
    records = directory_records + [
        {"id": "broken", "latitude": None, "longitude": 10.0},
        {"fullName": "No Id", "latitude": 1.0, "longitude": 1.0},
        "not a record",
    ]
    directory = CrewDirectory()
    assert directory.replace_from_records(records, now=now) == 3
    assert "broken" not in directory


def test_replace_is_wholesale(directory, directory_records, now):
    """A new snapshot replaces the old one entirely."""
    directory.replace_from_records(directory_records[:1], now=now)
    assert [u.id for u in directory.get_all()] == ["user-a"]


def test_later_duplicate_wins(directory_records, now):
    updated = dict(directory_records[1], city="Chennai")
    directory = CrewDirectory()
    directory.replace_from_records(directory_records + [updated], now=now)
    assert len(directory) == 3
    assert directory["user-b"].city == "Chennai"


def test_get_online(directory, now):
    assert [u.id for u in directory.get_online(now)] == ["user-a"]
    assert directory.get_online(now + timedelta(hours=1)) == []


def test_status_report(directory, now):
    report = directory.get_status_report(now)
    assert report["total_users"] == 3
    assert report["online"] == 1
    assert report["offline"] == 2
    assert report["received_at"] == now.isoformat()
    assert report["users"]["user-a"]["status"] == "online"
    assert report["users"]["user-c"]["user_type"] == "local"
    assert report["users"]["user-b"]["last_fix"] is None
