"""Per-participant interval index answering "is this participant free?".

Each participant key owns a bucket holding its non-canceled booking ranges as
``(start, record_id, end)`` tuples sorted by start. Overlap queries bisect to
``candidate.start - longest`` (the longest range ever stored in the bucket)
and stop at ``candidate.end``, so a lookup costs ``O(log n + k)`` where ``k``
is the handful of neighbours that could possibly touch the candidate.

The index is a cache of the booking table: :meth:`ConflictIndex.rebuild`
recreates it from persisted records at any time.
"""
from __future__ import annotations

from bisect import bisect_left, insort
from dataclasses import dataclass
from datetime import timedelta
import logging
import threading
from typing import Iterable, Iterator

from ..core.errors import IndexConsistencyError
from ..core.time_range import TimeRange
from ..db.models.participant import ParticipantRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ParticipantKey:
    role: ParticipantRole
    id: int

    @classmethod
    def tutor(cls, participant_id: int) -> ParticipantKey:
        return cls(ParticipantRole.tutor, participant_id)

    @classmethod
    def student(cls, participant_id: int) -> ParticipantKey:
        return cls(ParticipantRole.student, participant_id)

    @property
    def sort_key(self) -> tuple[str, int]:
        return (self.role.value, self.id)

    def __str__(self) -> str:
        return f"{self.role.value}:{self.id}"


class _Bucket:
    __slots__ = ("lock", "entries", "ranges", "longest")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entries: list[tuple] = []
        self.ranges: dict[int, TimeRange] = {}
        self.longest = timedelta(0)

    def window(self, time_range: TimeRange) -> Iterator[tuple]:
        lo = bisect_left(self.entries, (time_range.start - self.longest,))
        hi = bisect_left(self.entries, (time_range.end,))
        for entry in self.entries[lo:hi]:
            if entry[2] > time_range.start:
                yield entry


class ConflictIndex:
    def __init__(self) -> None:
        self._buckets: dict[ParticipantKey, _Bucket] = {}
        self._guard = threading.Lock()

    def _bucket(self, key: ParticipantKey, create: bool = False) -> _Bucket | None:
        with self._guard:
            bucket = self._buckets.get(key)
            if bucket is None and create:
                bucket = self._buckets[key] = _Bucket()
            return bucket

    def insert(self, key: ParticipantKey, record_id: int, time_range: TimeRange) -> None:
        bucket = self._bucket(key, create=True)
        with bucket.lock:
            if record_id in bucket.ranges:
                logger.error(
                    "Booking already indexed",
                    extra={"participant": str(key), "booking_id": record_id},
                )
                raise IndexConsistencyError(f"Booking {record_id} already indexed for {key}")
            insort(bucket.entries, (time_range.start, record_id, time_range.end))
            bucket.ranges[record_id] = time_range
            if time_range.duration() > bucket.longest:
                bucket.longest = time_range.duration()

    def remove(self, key: ParticipantKey, record_id: int) -> TimeRange:
        bucket = self._bucket(key)
        if bucket is None:
            logger.error(
                "Participant missing from index",
                extra={"participant": str(key), "booking_id": record_id},
            )
            raise IndexConsistencyError(f"Booking {record_id} is not indexed for {key}")
        with bucket.lock:
            time_range = bucket.ranges.get(record_id)
            if time_range is None:
                logger.error(
                    "Booking missing from index",
                    extra={"participant": str(key), "booking_id": record_id},
                )
                raise IndexConsistencyError(f"Booking {record_id} is not indexed for {key}")
            position = bisect_left(bucket.entries, (time_range.start, record_id))
            del bucket.entries[position]
            del bucket.ranges[record_id]
            if not bucket.entries:
                bucket.longest = timedelta(0)
        return time_range

    def query_overlap(
        self,
        key: ParticipantKey,
        time_range: TimeRange,
        exclude: Iterable[int] = (),
    ) -> list[int]:
        bucket = self._bucket(key)
        if bucket is None:
            return []
        skip = set(exclude)
        with bucket.lock:
            return [entry[1] for entry in bucket.window(time_range) if entry[1] not in skip]

    def get(self, key: ParticipantKey, record_id: int) -> TimeRange | None:
        bucket = self._bucket(key)
        if bucket is None:
            return None
        with bucket.lock:
            return bucket.ranges.get(record_id)

    def intervals(self, key: ParticipantKey, window: TimeRange) -> list[TimeRange]:
        """Snapshot of the ranges of ``key`` intersecting ``window``, ordered by start."""

        bucket = self._bucket(key)
        if bucket is None:
            return []
        with bucket.lock:
            return [bucket.ranges[entry[1]] for entry in bucket.window(window)]

    def record_ids(self, key: ParticipantKey) -> set[int]:
        bucket = self._bucket(key)
        if bucket is None:
            return set()
        with bucket.lock:
            return set(bucket.ranges)

    def __contains__(self, key: object) -> bool:
        with self._guard:
            return key in self._buckets

    def drop(self, key: ParticipantKey) -> None:
        with self._guard:
            self._buckets.pop(key, None)

    def clear(self) -> None:
        with self._guard:
            self._buckets.clear()

    def rebuild(self, entries: Iterable[tuple[ParticipantKey, int, TimeRange]]) -> int:
        self.clear()
        count = 0
        for key, record_id, time_range in entries:
            self.insert(key, record_id, time_range)
            count += 1
        return count


__all__ = ["ConflictIndex", "ParticipantKey"]
