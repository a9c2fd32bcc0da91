from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..core.errors import UnknownParticipantError
from ..core.time_range import TimeRange, ensure_utc
from ..db import models, schemas


def create_note(db: Session, payload: schemas.CalendarNoteCreate) -> models.CalendarNote:
    time_range = TimeRange(payload.starts_at, payload.ends_at)
    if db.get(models.Tutor, payload.creator_id) is None:
        raise UnknownParticipantError("tutor", payload.creator_id)
    tutor_ids = set(payload.tutor_ids)
    tutors = list(
        db.execute(select(models.Tutor).where(models.Tutor.id.in_(tutor_ids))).scalars().all()
    )
    missing = tutor_ids - {tutor.id for tutor in tutors}
    if missing:
        raise UnknownParticipantError("tutor", min(missing))
    note = models.CalendarNote(
        description=payload.description,
        starts_at=time_range.start,
        ends_at=time_range.end,
        creator_id=payload.creator_id,
        tutors=tutors,
    )
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def list_notes(
    db: Session,
    *,
    creator_id: int | None = None,
    tutor_id: int | None = None,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
) -> list[models.CalendarNote]:
    query = db.query(models.CalendarNote).options(selectinload(models.CalendarNote.tutors))
    if creator_id is not None:
        query = query.filter(models.CalendarNote.creator_id == creator_id)
    if tutor_id is not None:
        query = query.filter(models.CalendarNote.tutors.any(models.Tutor.id == tutor_id))
    if from_dt is not None:
        query = query.filter(models.CalendarNote.ends_at > ensure_utc(from_dt))
    if to_dt is not None:
        query = query.filter(models.CalendarNote.starts_at < ensure_utc(to_dt))
    return query.order_by(models.CalendarNote.starts_at).all()


__all__ = ["create_note", "list_notes"]
