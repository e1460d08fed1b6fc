import threading

from climb_intelligence.storage.data_models import ClimbRecord
from climb_intelligence.storage.records import ClimbRepository

CLIMB_ID = "route_0_1200"


def _metadata(name="Cat 2 4.5km"):
    return ClimbRecord(id=CLIMB_ID, name=name, length=4500.0, elevation=360.0,
                       avg_grade=8.0, max_grade=11.0, category=3, created_at=1_000)


def test_first_attempt_becomes_record_but_is_not_a_pr(repository):
    result = repository.save_attempt(CLIMB_ID, _metadata(), 600_000, avg_power=260, date=1_000)

    assert not result.is_pr
    assert result.improved_by_ms == 0
    assert repository.get_pr(CLIMB_ID).id == result.attempt_id
    assert repository.get_all_climbs()[0].name == "Cat 2 4.5km"


def test_faster_attempt_beats_record(repository):
    repository.save_attempt(CLIMB_ID, _metadata(), 600_000, date=1_000)
    result = repository.save_attempt(CLIMB_ID, _metadata(), 540_000, date=2_000)

    assert result.is_pr
    assert result.improved_by_ms == 60_000
    pr = repository.get_pr(CLIMB_ID)
    assert pr.time_ms == 540_000
    assert sum(a.is_pr for a in repository.get_attempts(CLIMB_ID)) == 1


def test_slower_attempt_keeps_record(repository):
    repository.save_attempt(CLIMB_ID, _metadata(), 540_000, date=1_000)
    result = repository.save_attempt(CLIMB_ID, _metadata(), 600_000, date=2_000)

    assert not result.is_pr
    assert repository.get_pr(CLIMB_ID).time_ms == 540_000
    assert len(repository.get_attempts(CLIMB_ID)) == 2


def test_equal_time_is_not_a_pr(repository):
    repository.save_attempt(CLIMB_ID, _metadata(), 540_000, date=1_000)
    result = repository.save_attempt(CLIMB_ID, _metadata(), 540_000, date=2_000)
    assert not result.is_pr
    assert repository.get_pr(CLIMB_ID).date == 1_000


def test_metadata_stored_only_once(repository):
    repository.save_attempt(CLIMB_ID, _metadata("First name"), 600_000, date=1_000)
    repository.save_attempt(CLIMB_ID, _metadata("Second name"), 590_000, date=2_000)
    climbs = repository.get_all_climbs()
    assert len(climbs) == 1
    assert climbs[0].name == "First name"


def test_concurrent_saves_keep_single_record(repository):
    times = [600_000 - i * 1_000 for i in range(8)]
    threads = [
        threading.Thread(target=repository.save_attempt, args=(CLIMB_ID, _metadata(), t))
        for t in times
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    attempts = repository.get_attempts(CLIMB_ID)
    assert len(attempts) == 8
    assert sum(a.is_pr for a in attempts) == 1
    assert repository.get_pr(CLIMB_ID).time_ms == min(times)
