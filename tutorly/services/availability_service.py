"""Free-time lookups over the conflict index.

Pending bookings count as occupied: a slot is reserved as soon as somebody
books it, before any confirmation, so two schedulers cannot race for it.
"""
from __future__ import annotations

from typing import Iterable, Iterator, Sequence

from ..core.time_range import TimeRange
from .conflict_index import ConflictIndex, ParticipantKey


class FreeSlots:
    """Gaps of ``window`` not covered by ``busy``.

    The busy ranges are captured when the object is built; iterating it again
    yields the same slots even if bookings change in the meantime.
    """

    def __init__(self, window: TimeRange, busy: Iterable[TimeRange]) -> None:
        self.window = window
        self._busy: Sequence[TimeRange] = tuple(sorted(busy, key=lambda item: item.start))

    def __iter__(self) -> Iterator[TimeRange]:
        cursor = self.window.start
        end = self.window.end
        for busy in self._busy:
            if busy.start > cursor:
                yield TimeRange(cursor, min(busy.start, end))
            if busy.end > cursor:
                cursor = busy.end
            if cursor >= end:
                return
        if cursor < end:
            yield TimeRange(cursor, end)

    def __repr__(self) -> str:
        return f"FreeSlots(window={self.window!r}, busy={len(self._busy)})"


def free_slots(index: ConflictIndex, key: ParticipantKey, window: TimeRange) -> FreeSlots:
    return FreeSlots(window, index.intervals(key, window))


def common_free_slots(
    index: ConflictIndex, keys: Iterable[ParticipantKey], window: TimeRange
) -> FreeSlots:
    busy: list[TimeRange] = []
    for key in keys:
        busy.extend(index.intervals(key, window))
    return FreeSlots(window, busy)


__all__ = ["FreeSlots", "common_free_slots", "free_slots"]
