from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...api import deps
from ...core import errors
from ...db.session import get_db
from ...db import models, schemas
from ...services import calendar_service
from .bookings import to_http_error

router = APIRouter(prefix="/calendar-notes", tags=["calendar-notes"])


@router.get("", response_model=list[schemas.CalendarNote])
def list_calendar_notes(
    creator_id: int | None = None,
    tutor_id: int | None = None,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "viewer")),
):
    return calendar_service.list_notes(
        db, creator_id=creator_id, tutor_id=tutor_id, from_dt=from_dt, to_dt=to_dt
    )


@router.post("", response_model=schemas.CalendarNote, status_code=status.HTTP_201_CREATED)
def create_calendar_note(
    payload: schemas.CalendarNoteCreate,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    try:
        return calendar_service.create_note(db, payload)
    except errors.BookingError as exc:
        raise to_http_error(exc) from exc


@router.get("/{note_id}", response_model=schemas.CalendarNote)
def get_calendar_note(
    note_id: int,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "viewer")),
):
    note = db.get(models.CalendarNote, note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Calendar note not found")
    return note


@router.delete("/{note_id}")
def delete_calendar_note(
    note_id: int,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    note = db.get(models.CalendarNote, note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Calendar note not found")
    db.delete(note)
    db.commit()
    return {"status": "deleted"}
