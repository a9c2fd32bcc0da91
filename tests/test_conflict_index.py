from datetime import datetime, timedelta, timezone
import random

import pytest

from tutorly.core.errors import IndexConsistencyError
from tutorly.core.time_range import TimeRange
from tutorly.services.conflict_index import ConflictIndex, ParticipantKey

BASE = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)
TUTOR = ParticipantKey.tutor(1)


def span(start_min: int, end_min: int) -> TimeRange:
    return TimeRange(BASE + timedelta(minutes=start_min), BASE + timedelta(minutes=end_min))


def test_query_overlap_returns_conflicting_ids():
    index = ConflictIndex()
    index.insert(TUTOR, 1, span(60, 120))
    index.insert(TUTOR, 2, span(180, 240))

    assert index.query_overlap(TUTOR, span(90, 200)) == [1, 2]
    assert index.query_overlap(TUTOR, span(120, 180)) == []
    assert index.query_overlap(ParticipantKey.student(1), span(60, 120)) == []


def test_keys_are_separated_by_role():
    index = ConflictIndex()
    index.insert(ParticipantKey.tutor(5), 1, span(0, 60))

    assert index.query_overlap(ParticipantKey.student(5), span(0, 60)) == []


def test_long_booking_found_from_far_left():
    index = ConflictIndex()
    index.insert(TUTOR, 1, span(0, 600))
    for record_id, start in enumerate(range(700, 1000, 60), start=2):
        index.insert(TUTOR, record_id, span(start, start + 30))

    assert index.query_overlap(TUTOR, span(500, 510)) == [1]


def test_exclude_skips_own_record():
    index = ConflictIndex()
    index.insert(TUTOR, 1, span(0, 60))

    assert index.query_overlap(TUTOR, span(30, 90), exclude=[1]) == []


def test_remove_frees_the_range():
    index = ConflictIndex()
    index.insert(TUTOR, 1, span(0, 60))

    removed = index.remove(TUTOR, 1)

    assert removed == span(0, 60)
    assert index.query_overlap(TUTOR, span(0, 60)) == []
    assert index.record_ids(TUTOR) == set()


def test_consistency_violations_raise():
    index = ConflictIndex()
    index.insert(TUTOR, 1, span(0, 60))

    with pytest.raises(IndexConsistencyError):
        index.insert(TUTOR, 1, span(120, 180))
    with pytest.raises(IndexConsistencyError):
        index.remove(TUTOR, 99)
    with pytest.raises(IndexConsistencyError):
        index.remove(ParticipantKey.student(3), 1)


def test_intervals_snapshot_is_sorted_and_filtered():
    index = ConflictIndex()
    index.insert(TUTOR, 2, span(300, 360))
    index.insert(TUTOR, 1, span(0, 60))
    index.insert(TUTOR, 3, span(600, 660))

    assert index.intervals(TUTOR, span(30, 400)) == [span(0, 60), span(300, 360)]


def test_rebuild_replaces_content():
    index = ConflictIndex()
    index.insert(TUTOR, 1, span(0, 60))

    count = index.rebuild([(TUTOR, 7, span(100, 160)), (ParticipantKey.student(2), 7, span(100, 160))])

    assert count == 2
    assert index.record_ids(TUTOR) == {7}


def test_matches_brute_force_scan():
    rng = random.Random(11)
    index = ConflictIndex()
    stored: dict[int, TimeRange] = {}
    for record_id in range(1, 200):
        start = rng.randint(0, 5000)
        candidate = span(start, start + rng.randint(5, 240))
        if rng.random() < 0.3 and stored:
            victim = rng.choice(sorted(stored))
            index.remove(TUTOR, victim)
            del stored[victim]
        if not any(candidate.overlaps(other) for other in stored.values()):
            index.insert(TUTOR, record_id, candidate)
            stored[record_id] = candidate
        probe_start = rng.randint(0, 5000)
        probe = span(probe_start, probe_start + rng.randint(1, 300))
        expected = sorted(rid for rid, other in stored.items() if other.overlaps(probe))
        assert sorted(index.query_overlap(TUTOR, probe)) == expected


def test_remove_for_unknown_participant_leaves_index_untouched():
    index = ConflictIndex()
    stranger = ParticipantKey.student(42)

    with pytest.raises(IndexConsistencyError):
        index.remove(stranger, 1)

    assert stranger not in index
