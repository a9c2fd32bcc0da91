from datetime import datetime

from fastapi import APIRouter, Depends

from ...api import deps
from ...core import errors
from ...core.time_range import TimeRange
from ...db import models, schemas
from ...services import availability_service
from ...services.booking_engine import BookingEngine
from ...services.conflict_index import ParticipantKey
from .bookings import to_http_error

router = APIRouter(prefix="/availability", tags=["availability"])


def _window(from_dt: datetime, to_dt: datetime) -> TimeRange:
    try:
        return TimeRange(from_dt, to_dt)
    except errors.InvalidRangeError as exc:
        raise to_http_error(exc) from exc


def _as_slots(slots: availability_service.FreeSlots) -> list[schemas.TimeSlot]:
    return [schemas.TimeSlot(starts_at=slot.start, ends_at=slot.end) for slot in slots]


@router.get("/common", response_model=list[schemas.TimeSlot])
def common_availability(
    tutor_id: int,
    student_id: int,
    from_dt: datetime,
    to_dt: datetime,
    engine: BookingEngine = Depends(deps.get_engine),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "viewer")),
):
    slots = availability_service.common_free_slots(
        engine.index,
        [ParticipantKey.tutor(tutor_id), ParticipantKey.student(student_id)],
        _window(from_dt, to_dt),
    )
    return _as_slots(slots)


@router.get("/{role}/{participant_id}", response_model=list[schemas.TimeSlot])
def participant_availability(
    role: models.ParticipantRole,
    participant_id: int,
    from_dt: datetime,
    to_dt: datetime,
    engine: BookingEngine = Depends(deps.get_engine),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "viewer")),
):
    slots = availability_service.free_slots(
        engine.index, ParticipantKey(role, participant_id), _window(from_dt, to_dt)
    )
    return _as_slots(slots)
