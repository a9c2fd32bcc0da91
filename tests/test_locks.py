import threading

import pytest

from tutorly.core.errors import BookingContendedError
from tutorly.services.conflict_index import ParticipantKey
from tutorly.services.locks import ParticipantLocks


def test_hold_times_out_when_key_is_busy():
    locks = ParticipantLocks(timeout=0.05)
    key = ParticipantKey.tutor(1)
    taken = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold(key):
            taken.set()
            release.wait(2)

    thread = threading.Thread(target=holder)
    thread.start()
    taken.wait(2)
    try:
        with pytest.raises(BookingContendedError):
            with locks.hold(ParticipantKey.student(9), key):
                pass
        # the student lock taken before the timeout must have been released
        with locks.hold(ParticipantKey.student(9), timeout=0.05):
            pass
    finally:
        release.set()
        thread.join()


def test_swapped_key_order_does_not_deadlock():
    locks = ParticipantLocks(timeout=1)
    first, second = ParticipantKey.tutor(1), ParticipantKey.student(1)
    errors = []

    def worker(keys):
        try:
            for _ in range(200):
                with locks.hold(*keys):
                    pass
        except BookingContendedError as exc:
            errors.append(exc)

    threads = [
        threading.Thread(target=worker, args=((first, second),)),
        threading.Thread(target=worker, args=((second, first),)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []


def test_locks_released_after_exception():
    locks = ParticipantLocks(timeout=0.05)
    key = ParticipantKey.tutor(3)

    with pytest.raises(RuntimeError):
        with locks.hold(key):
            raise RuntimeError("boom")

    with locks.hold(key):
        pass


def test_exclusive_waits_for_holders_and_blocks_new_ones():
    locks = ParticipantLocks(timeout=0.05)
    key = ParticipantKey.tutor(4)
    taken = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold(key):
            taken.set()
            release.wait(2)

    thread = threading.Thread(target=holder)
    thread.start()
    taken.wait(2)
    try:
        with pytest.raises(BookingContendedError):
            with locks.exclusive():
                pass
    finally:
        release.set()
        thread.join()

    with locks.exclusive():
        with pytest.raises(BookingContendedError):
            with locks.hold(ParticipantKey.student(4)):
                pass
    with locks.hold(key):
        pass


def test_idle_participant_locks_are_discarded():
    locks = ParticipantLocks(timeout=0.05)

    for participant_id in range(50):
        with locks.hold(ParticipantKey.tutor(participant_id), ParticipantKey.student(participant_id)):
            assert len(locks) == 2

    assert len(locks) == 0
