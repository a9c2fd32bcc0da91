from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import models
from ..db.models.participant import ParticipantRole, ParticipantStatus


class ParticipantDirectory(Protocol):
    def exists(self, participant_id: int, role: ParticipantRole) -> bool: ...

    def is_active(self, participant_id: int, role: ParticipantRole) -> bool: ...


class SqlParticipantDirectory:
    """Read-only view of the tutor and student tables."""

    _MODELS = {
        ParticipantRole.tutor: models.Tutor,
        ParticipantRole.student: models.Student,
    }

    def __init__(self, db: Session) -> None:
        self._db = db

    def _status(self, participant_id: int, role: ParticipantRole) -> ParticipantStatus | None:
        model = self._MODELS[ParticipantRole(role)]
        return self._db.scalar(select(model.status).where(model.id == participant_id))

    def exists(self, participant_id: int, role: ParticipantRole) -> bool:
        return self._status(participant_id, role) is not None

    def is_active(self, participant_id: int, role: ParticipantRole) -> bool:
        return self._status(participant_id, role) == ParticipantStatus.active


__all__ = ["ParticipantDirectory", "SqlParticipantDirectory"]
