from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import models
from ..db.models.booking import ACTIVE_STATES
from ..db.models.participant import ParticipantRole
from .conflict_index import ParticipantKey


class BookingStore(Protocol):
    def load_record(self, record_id: int) -> models.Booking | None: ...

    def refresh(self, record: models.Booking) -> None: ...

    def save_record(self, record: models.Booking) -> models.Booking: ...

    def load_all_for_participant(self, key: ParticipantKey) -> list[models.Booking]: ...

    def load_active(self) -> list[models.Booking]: ...

    def add_audit(self, entry: models.AuditLog) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class SqlBookingStore:
    def __init__(self, db: Session) -> None:
        self._db = db

    def load_record(self, record_id: int) -> models.Booking | None:
        return self._db.get(models.Booking, record_id)

    def refresh(self, record: models.Booking) -> None:
        self._db.refresh(record)

    def save_record(self, record: models.Booking) -> models.Booking:
        self._db.add(record)
        self._db.flush()
        return record

    def load_all_for_participant(self, key: ParticipantKey) -> list[models.Booking]:
        column = (
            models.Booking.tutor_id
            if key.role == ParticipantRole.tutor
            else models.Booking.student_id
        )
        stmt = (
            select(models.Booking)
            .where(column == key.id, models.Booking.state.in_(ACTIVE_STATES))
            .order_by(models.Booking.starts_at)
        )
        return list(self._db.execute(stmt).scalars().all())

    def load_active(self) -> list[models.Booking]:
        stmt = (
            select(models.Booking)
            .where(models.Booking.state.in_(ACTIVE_STATES))
            .order_by(models.Booking.starts_at)
        )
        return list(self._db.execute(stmt).scalars().all())

    def add_audit(self, entry: models.AuditLog) -> None:
        self._db.add(entry)

    def commit(self) -> None:
        self._db.commit()

    def rollback(self) -> None:
        self._db.rollback()


__all__ = ["BookingStore", "SqlBookingStore"]
