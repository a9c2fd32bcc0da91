"""Error taxonomy of the booking engine.

Everything deriving from :class:`BookingError` is an expected outcome of a
public operation and is translated to an HTTP status by the routes.
:class:`IndexConsistencyError` sits outside that hierarchy: it
means the engine itself is broken and must never be mapped to a client error.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence


class BookingError(Exception):
    pass


class InvalidRangeError(BookingError):
    pass


class UnknownParticipantError(BookingError):
    def __init__(self, role: str, participant_id: int) -> None:
        super().__init__(f"Unknown {role} {participant_id}")
        self.role = role
        self.participant_id = participant_id


class InactiveParticipantError(BookingError):
    def __init__(self, role: str, participant_id: int) -> None:
        super().__init__(f"{role.capitalize()} {participant_id} is not active")
        self.role = role
        self.participant_id = participant_id


class ConflictError(BookingError):
    role = "participant"

    def __init__(
        self,
        participant_id: int,
        record_ids: Sequence[int],
        windows: Iterable[tuple[datetime, datetime]] = (),
    ) -> None:
        ids = ", ".join(f"#{record_id}" for record_id in record_ids)
        super().__init__(f"{self.role.capitalize()} {participant_id} is already booked ({ids})")
        self.participant_id = participant_id
        self.record_ids = list(record_ids)
        self.windows = list(windows)


class TutorConflictError(ConflictError):
    role = "tutor"


class StudentConflictError(ConflictError):
    role = "student"


class NotFoundError(BookingError):
    def __init__(self, record_id: int) -> None:
        super().__init__(f"Booking {record_id} not found")
        self.record_id = record_id


class InvalidTransitionError(BookingError):
    def __init__(self, record_id: int, state: str, action: str) -> None:
        super().__init__(f"Cannot {action} booking {record_id} in state {state}")
        self.record_id = record_id
        self.state = state
        self.action = action


class BookingContendedError(BookingError):
    pass


class IndexConsistencyError(RuntimeError):
    pass


__all__ = [
    "BookingError",
    "InvalidRangeError",
    "UnknownParticipantError",
    "InactiveParticipantError",
    "ConflictError",
    "TutorConflictError",
    "StudentConflictError",
    "NotFoundError",
    "InvalidTransitionError",
    "BookingContendedError",
    "IndexConsistencyError",
]
