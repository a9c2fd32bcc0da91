from enum import Enum as PyEnum


class ParticipantRole(str, PyEnum):
    tutor = "tutor"
    student = "student"


class ParticipantStatus(str, PyEnum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"
    blocked = "blocked"
