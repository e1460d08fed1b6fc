import pytest

from climb_intelligence.storage.csv_manager import CSVClimbStore, haversine_distance
from climb_intelligence.storage.data_models import Attempt, ClimbRecord


def _make_climb(climb_id="route_0_1200", created_at=1_000, latitude=45.0, longitude=6.0):
    return ClimbRecord(id=climb_id, name="Cat 2 4.5km", latitude=latitude, longitude=longitude,
                       length=4500.0, elevation=360.0, avg_grade=8.0, max_grade=11.5,
                       category=3, created_at=created_at)


def test_haversine_distance():
    # One degree of latitude is about 111 km
    assert haversine_distance(45.0, 6.0, 46.0, 6.0) == pytest.approx(111_195, rel=1e-3)
    assert haversine_distance(45.0, 6.0, 45.0, 6.0) == pytest.approx(0.0)


def test_insert_climb_only_once(store):
    climb = _make_climb()
    assert store.insert_climb(climb)
    assert not store.insert_climb(_make_climb(created_at=2_000))

    stored = store.get_climb("route_0_1200")
    assert stored == climb
    assert store.get_climb("missing") is None


def test_all_climbs_newest_first(store):
    store.insert_climb(_make_climb("a", created_at=1_000))
    store.insert_climb(_make_climb("b", created_at=3_000))
    store.insert_climb(_make_climb("c", created_at=2_000))
    assert [c.id for c in store.get_all_climbs()] == ["b", "c", "a"]


def test_delete_climb(store):
    store.insert_climb(_make_climb())
    assert store.delete_climb("route_0_1200")
    assert not store.delete_climb("route_0_1200")
    assert store.get_all_climbs() == []


def test_find_nearby_climb(store):
    assert store.find_nearby_climb(45.0, 6.0) is None
    store.insert_climb(_make_climb("near", latitude=45.0, longitude=6.0))
    store.insert_climb(_make_climb("far", latitude=45.5, longitude=6.0))

    # ~110 m away
    assert store.find_nearby_climb(45.001, 6.0).id == "near"
    # ~1.1 km away
    assert store.find_nearby_climb(45.01, 6.0) is None
    assert store.find_nearby_climb(45.01, 6.0, radius_m=2000).id == "near"


def test_attempt_ids_increment(store):
    first = Attempt(climb_id="route_0_1200", time_ms=600_000, date=1_000)
    second = Attempt(climb_id="route_0_1200", time_ms=540_000, date=2_000)
    assert store.insert_attempt(first) == 1
    assert store.insert_attempt(second) == 2
    assert second.id == 2

    attempts = store.get_attempts("route_0_1200")
    assert [a.id for a in attempts] == [2, 1]
    assert store.get_fastest_attempt("route_0_1200").time_ms == 540_000
    assert store.get_attempts("other") == []
    assert store.get_fastest_attempt("other") is None


def test_attempt_date_defaults_to_now(store):
    attempt = Attempt(climb_id="c", time_ms=1_000)
    store.insert_attempt(attempt)
    assert store.get_attempts("c")[0].date > 0


def test_pr_flags(store):
    first = store.insert_attempt(Attempt(climb_id="c", time_ms=600_000, date=1_000))
    second = store.insert_attempt(Attempt(climb_id="c", time_ms=540_000, date=2_000))
    other = store.insert_attempt(Attempt(climb_id="d", time_ms=100_000, date=3_000))
    store.mark_as_pr(first)
    store.mark_as_pr(other)
    assert store.get_pr("c").id == first

    store.clear_pr("c")
    assert store.get_pr("c") is None
    assert store.get_pr("d").id == other

    store.mark_as_pr(second)
    assert store.get_pr("c").time_ms == 540_000


def test_recent_attempts_limit(store):
    for i in range(5):
        store.insert_attempt(Attempt(climb_id="c", time_ms=1_000 + i, date=1_000 + i))
    recent = store.get_recent_attempts(3)
    assert [a.time_ms for a in recent] == [1_004, 1_003, 1_002]


def test_delete_attempt(store):
    attempt_id = store.insert_attempt(Attempt(climb_id="c", time_ms=1_000, date=1_000))
    assert store.delete_attempt(attempt_id)
    assert not store.delete_attempt(attempt_id)
    assert store.get_attempts("c") == []


def test_backups_are_pruned(tmp_path, config):
    config.update_storage_settings(max_backup_files=2)
    store = CSVClimbStore(str(tmp_path / "data"), config)
    for i in range(6):
        store.insert_attempt(Attempt(climb_id="c", time_ms=1_000, date=1_000 + i))

    backups = list((tmp_path / "data" / "backups").glob("attempts_*.csv"))
    assert len(backups) == 2


def test_storage_stats(store):
    store.insert_climb(_make_climb())
    attempt_id = store.insert_attempt(Attempt(climb_id="route_0_1200", time_ms=1_000, date=1_000))
    store.mark_as_pr(attempt_id)

    stats = store.get_storage_stats()
    assert stats['climbs_count'] == 1
    assert stats['attempts_count'] == 1
    assert stats['pr_count'] == 1
    assert stats['storage_size_mb'] > 0
