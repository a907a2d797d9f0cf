import pytest

from safewalk.history import TrackHistoryDB
from safewalk.models import LocationRecord, RouteResult


@pytest.fixture
def db(tmp_path):
    db = TrackHistoryDB(str(tmp_path / "history.db"))
    yield db
    db.close()


def test_session_lifecycle(db):
    route = RouteResult(path="", destination_text="Central Library", route_id="route-1")
    db.start_session("s1", route)

    session = db.get_session("s1")
    assert session["route_id"] == "route-1"
    assert session["destination"] == "Central Library"
    assert session["started_at"] is not None
    assert session["ended_at"] is None

    db.end_session("s1", "arrived", 125)
    session = db.get_session("s1")
    assert session["end_reason"] == "arrived"
    assert session["elapsed_seconds"] == 125
    assert session["ended_at"] is not None


def test_unknown_session(db):
    assert db.get_session("missing") is None


def test_track_is_kept_in_order(db):
    db.start_session("s1")
    for i in range(3):
        db.record_location(LocationRecord("s1", 51.5 + i * 0.001, -0.1, 1700000000.0 + i))
    db.record_location(LocationRecord("s2", 40.0, -70.0, 1700000000.0))

    assert db.get_track("s1") == [(51.5, -0.1), (51.501, -0.1), (51.502, -0.1)]
    assert db.get_track("s2") == [(40.0, -70.0)]


def test_stats(db):
    assert db.get_stats() == {"total_sessions": 0, "total_minutes": 0, "location_updates": 0}

    db.start_session("s1")
    db.end_session("s1", "manual", 60)
    db.start_session("s2")
    db.end_session("s2", "arrived", 120)
    db.record_location(LocationRecord("s2", 51.5, -0.1, 1700000000.0))

    stats = db.get_stats()
    assert stats["total_sessions"] == 2
    assert stats["total_minutes"] == pytest.approx(3.0)
    assert stats["location_updates"] == 1
