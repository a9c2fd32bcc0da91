from datetime import datetime, timezone
import logging
import time
from typing import Callable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...api import deps
from ...config import get_settings
from ...core import errors
from ...core.time_range import TimeRange, ensure_utc
from ...db.session import get_db
from ...db import models, schemas
from ...services.booking_engine import BookingEngine
from ...services.conflict_index import ParticipantKey

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])

T = TypeVar("T")

_STATUS_BY_ERROR: list[tuple[type[errors.BookingError], int]] = [
    (errors.ConflictError, status.HTTP_409_CONFLICT),
    (errors.NotFoundError, status.HTTP_404_NOT_FOUND),
    (errors.UnknownParticipantError, status.HTTP_404_NOT_FOUND),
    (errors.InvalidRangeError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (errors.InvalidTransitionError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (errors.InactiveParticipantError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (errors.BookingContendedError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def to_http_error(exc: errors.BookingError) -> HTTPException:
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    if isinstance(exc, errors.ConflictError):
        detail = {
            "message": str(exc),
            "conflicts": [
                {
                    "booking_id": record_id,
                    "starts_at": starts_at.isoformat(),
                    "ends_at": ends_at.isoformat(),
                }
                for record_id, (starts_at, ends_at) in zip(exc.record_ids, exc.windows)
            ],
        }
        return HTTPException(status_code=status_code, detail=detail)
    if isinstance(exc, errors.BookingContendedError):
        return HTTPException(
            status_code=status_code, detail=str(exc), headers={"Retry-After": "1"}
        )
    return HTTPException(status_code=status_code, detail=str(exc))


def run_with_retry(operation: Callable[[], T]) -> T:
    settings = get_settings()
    attempts = max(settings.booking_retry_attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except errors.BookingContendedError:
            if attempt == attempts:
                raise
            logger.warning("Booking contended, retrying", extra={"attempt": attempt})
            time.sleep(settings.booking_retry_backoff_sec * attempt)
    raise AssertionError("unreachable")


def serialize(booking: models.Booking, engine: BookingEngine) -> schemas.Booking:
    result = schemas.Booking.model_validate(booking)
    return result.model_copy(
        update={
            "state": engine.effective_state(booking),
            "starts_at": ensure_utc(booking.starts_at),
            "ends_at": ensure_utc(booking.ends_at),
        }
    )


@router.get("", response_model=list[schemas.Booking])
def list_bookings(
    tutor_id: int | None = None,
    student_id: int | None = None,
    creator_id: int | None = None,
    state: models.BookingState | None = None,
    kind: models.BookingKind | None = None,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(deps.get_engine),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "viewer")),
):
    query = db.query(models.Booking)
    if tutor_id is not None:
        query = query.filter(models.Booking.tutor_id == tutor_id)
    if student_id is not None:
        query = query.filter(models.Booking.student_id == student_id)
    if creator_id is not None:
        query = query.filter(models.Booking.creator_id == creator_id)
    if kind is not None:
        query = query.filter(models.Booking.kind == kind)
    if from_dt is not None:
        query = query.filter(models.Booking.ends_at > ensure_utc(from_dt))
    if to_dt is not None:
        query = query.filter(models.Booking.starts_at < ensure_utc(to_dt))
    now = datetime.now(timezone.utc)
    if state == models.BookingState.completed:
        query = query.filter(
            models.Booking.state == models.BookingState.confirmed,
            models.Booking.ends_at <= now,
        )
    elif state == models.BookingState.confirmed:
        query = query.filter(
            models.Booking.state == models.BookingState.confirmed,
            models.Booking.ends_at > now,
        )
    elif state is not None:
        query = query.filter(models.Booking.state == state)
    bookings = (
        query.order_by(models.Booking.starts_at, models.Booking.id)
        .offset(skip)
        .limit(limit)
        .all()
    )
    return [serialize(booking, engine) for booking in bookings]


@router.post("", response_model=schemas.Booking, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: schemas.BookingCreate,
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(deps.get_engine),
    admin: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    try:
        kind = models.BookingKind(payload.kind)
        creator_role = models.ParticipantRole(payload.creator_role)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    try:
        time_range = TimeRange(payload.starts_at, payload.ends_at)
        booking = run_with_retry(
            lambda: engine.create(
                db,
                tutor_id=payload.tutor_id,
                student_id=payload.student_id,
                creator_id=payload.creator_id,
                time_range=time_range,
                description=payload.description,
                kind=kind,
                creator_role=creator_role,
                actor=deps.actor_for(admin),
            )
        )
    except errors.BookingError as exc:
        raise to_http_error(exc) from exc
    return serialize(booking, engine)


@router.post("/reindex")
def reindex_bookings(
    role: models.ParticipantRole | None = None,
    participant_id: int | None = None,
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(deps.get_engine),
    _: models.AdminUser = Depends(deps.require_roles("admin")),
):
    try:
        if role is not None and participant_id is not None:
            count = engine.rebuild_participant(db, ParticipantKey(role, participant_id))
        else:
            count = engine.rebuild(db)
    except errors.BookingError as exc:
        raise to_http_error(exc) from exc
    return {"status": "ok", "indexed": count}


@router.get("/{booking_id}", response_model=schemas.Booking)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(deps.get_engine),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "viewer")),
):
    try:
        booking = engine.get(db, booking_id)
    except errors.BookingError as exc:
        raise to_http_error(exc) from exc
    return serialize(booking, engine)


@router.post("/{booking_id}/confirm", response_model=schemas.Booking)
def confirm_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(deps.get_engine),
    admin: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    try:
        booking = run_with_retry(
            lambda: engine.confirm(db, booking_id, actor=deps.actor_for(admin))
        )
    except errors.BookingError as exc:
        raise to_http_error(exc) from exc
    return serialize(booking, engine)


@router.post("/{booking_id}/cancel", response_model=schemas.Booking)
def cancel_booking(
    booking_id: int,
    payload: schemas.BookingCancel,
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(deps.get_engine),
    admin: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    try:
        booking = run_with_retry(
            lambda: engine.cancel(
                db, booking_id, actor=deps.actor_for(admin), reason=payload.reason
            )
        )
    except errors.BookingError as exc:
        raise to_http_error(exc) from exc
    return serialize(booking, engine)


@router.post("/{booking_id}/reschedule", response_model=schemas.Booking)
def reschedule_booking(
    booking_id: int,
    payload: schemas.BookingReschedule,
    db: Session = Depends(get_db),
    engine: BookingEngine = Depends(deps.get_engine),
    admin: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    try:
        time_range = TimeRange(payload.starts_at, payload.ends_at)
        booking = run_with_retry(
            lambda: engine.reschedule(db, booking_id, time_range, actor=deps.actor_for(admin))
        )
    except errors.BookingError as exc:
        raise to_http_error(exc) from exc
    return serialize(booking, engine)
