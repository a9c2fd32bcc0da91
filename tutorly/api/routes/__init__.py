from . import (
    auth,
    availability,
    bookings,
    calendar_notes,
    misc,
    participants,
)

__all__ = [
    "auth",
    "availability",
    "bookings",
    "calendar_notes",
    "misc",
    "participants",
]
