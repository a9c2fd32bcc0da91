"""Booking engine: the only writer of booking records and of the conflict index.

Every mutation follows the same shape: validate the request, take the
participant locks of the tutor and the student, re-read the record, check the
index, then persist the record and update the index as one unit. If the
database commit fails the index changes are reverted, so a crashed request
never leaves a phantom reservation behind.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
import logging
from typing import Callable, Iterable, Sequence

from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.constants import (
    AUDIT_BOOKING_CANCELED,
    AUDIT_BOOKING_CONFIRMED,
    AUDIT_BOOKING_CREATED,
    AUDIT_BOOKING_RESCHEDULED,
    SYSTEM_ACTOR,
)
from ..core.errors import (
    InactiveParticipantError,
    InvalidRangeError,
    InvalidTransitionError,
    NotFoundError,
    StudentConflictError,
    TutorConflictError,
    UnknownParticipantError,
)
from ..core.time_range import TimeRange
from ..db import models
from ..db.models.audit_log import ActorType
from ..db.models.booking import BookingKind, BookingState
from ..db.models.participant import ParticipantRole
from .booking_store import BookingStore, SqlBookingStore
from .conflict_index import ConflictIndex, ParticipantKey
from .locks import ParticipantLocks
from .participant_directory import ParticipantDirectory, SqlParticipantDirectory

logger = logging.getLogger(__name__)

RangeValidator = Callable[[TimeRange], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Actor:
    type: ActorType = ActorType.system
    id: int | None = None
    name: str = SYSTEM_ACTOR


SYSTEM = Actor()


@dataclass(frozen=True)
class _IndexOp:
    insert: bool
    key: ParticipantKey
    record_id: int
    time_range: TimeRange

    def apply(self, index: ConflictIndex) -> None:
        if self.insert:
            index.insert(self.key, self.record_id, self.time_range)
        else:
            index.remove(self.key, self.record_id)

    def revert(self, index: ConflictIndex) -> None:
        if self.insert:
            index.remove(self.key, self.record_id)
        else:
            index.insert(self.key, self.record_id, self.time_range)


def duration_bounds(
    min_minutes: int | None = None, max_minutes: int | None = None
) -> RangeValidator:
    """Build a validator rejecting bookings shorter or longer than the given bounds."""

    def validate(time_range: TimeRange) -> None:
        duration = time_range.duration()
        if min_minutes is not None and duration < timedelta(minutes=min_minutes):
            raise InvalidRangeError(f"Bookings must last at least {min_minutes} minutes")
        if max_minutes is not None and duration > timedelta(minutes=max_minutes):
            raise InvalidRangeError(f"Bookings must last at most {max_minutes} minutes")

    return validate


def _keys(record: models.Booking) -> tuple[ParticipantKey, ParticipantKey]:
    return ParticipantKey.tutor(record.tutor_id), ParticipantKey.student(record.student_id)


class BookingEngine:
    def __init__(
        self,
        *,
        index: ConflictIndex | None = None,
        locks: ParticipantLocks | None = None,
        directory_factory: Callable[[Session], ParticipantDirectory] = SqlParticipantDirectory,
        store_factory: Callable[[Session], BookingStore] = SqlBookingStore,
        validators: Sequence[RangeValidator] = (),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.index = index if index is not None else ConflictIndex()
        self.locks = locks if locks is not None else ParticipantLocks()
        self._directory_factory = directory_factory
        self._store_factory = store_factory
        self._validators = list(validators)
        self._clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, db: Session, record_id: int) -> models.Booking:
        record = self._store_factory(db).load_record(record_id)
        if record is None:
            raise NotFoundError(record_id)
        return record

    def effective_state(self, record: models.Booking) -> BookingState:
        return record.effective_state(self._clock())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create(
        self,
        db: Session,
        *,
        tutor_id: int,
        student_id: int,
        creator_id: int,
        time_range: TimeRange,
        description: str | None = None,
        kind: BookingKind = BookingKind.prenotation,
        creator_role: ParticipantRole = ParticipantRole.tutor,
        actor: Actor = SYSTEM,
    ) -> models.Booking:
        self._validate(time_range)
        self._check_participants(
            db,
            [
                (ParticipantRole.tutor, tutor_id),
                (ParticipantRole.student, student_id),
                (ParticipantRole(creator_role), creator_id),
            ],
        )
        tutor_key, student_key = ParticipantKey.tutor(tutor_id), ParticipantKey.student(student_id)
        store = self._store_factory(db)
        with self.locks.hold(tutor_key, student_key):
            self._check_conflicts(tutor_key, student_key, time_range)
            now = self._clock()
            record = models.Booking(
                kind=BookingKind(kind),
                tutor_id=tutor_id,
                student_id=student_id,
                creator_id=creator_id,
                creator_role=ParticipantRole(creator_role),
                starts_at=time_range.start,
                ends_at=time_range.end,
                state=BookingState.pending,
                description=description,
                created_at=now,
            )
            try:
                store.save_record(record)
            except Exception:
                store.rollback()
                raise
            self._audit(store, AUDIT_BOOKING_CREATED, record, actor)
            self._commit(
                store,
                [
                    _IndexOp(True, tutor_key, record.id, time_range),
                    _IndexOp(True, student_key, record.id, time_range),
                ],
            )
        logger.info(
            "Booking created",
            extra={"booking_id": record.id, "tutor_id": tutor_id, "student_id": student_id},
        )
        return record

    def confirm(self, db: Session, record_id: int, *, actor: Actor = SYSTEM) -> models.Booking:
        store = self._store_factory(db)
        record = self.get(db, record_id)
        with self.locks.hold(*_keys(record)):
            store.refresh(record)
            state = self.effective_state(record)
            if state != BookingState.pending:
                raise InvalidTransitionError(record_id, state.value, "confirm")
            record.state = BookingState.confirmed
            record.confirmed_at = self._clock()
            self._audit(store, AUDIT_BOOKING_CONFIRMED, record, actor)
            self._commit(store, [])
        logger.info("Booking confirmed", extra={"booking_id": record_id})
        return record

    def cancel(
        self,
        db: Session,
        record_id: int,
        *,
        actor: Actor = SYSTEM,
        reason: str | None = None,
    ) -> models.Booking:
        store = self._store_factory(db)
        record = self.get(db, record_id)
        tutor_key, student_key = _keys(record)
        with self.locks.hold(tutor_key, student_key):
            store.refresh(record)
            state = self.effective_state(record)
            if state not in (BookingState.pending, BookingState.confirmed):
                raise InvalidTransitionError(record_id, state.value, "cancel")
            time_range = record.time_range
            record.state = BookingState.canceled
            record.canceled_at = self._clock()
            record.canceled_by = actor.name
            record.cancellation_reason = reason
            self._audit(store, AUDIT_BOOKING_CANCELED, record, actor, reason=reason)
            self._commit(
                store,
                [
                    _IndexOp(False, tutor_key, record_id, time_range),
                    _IndexOp(False, student_key, record_id, time_range),
                ],
            )
        logger.info("Booking canceled", extra={"booking_id": record_id, "actor": actor.name})
        return record

    def reschedule(
        self,
        db: Session,
        record_id: int,
        new_range: TimeRange,
        *,
        actor: Actor = SYSTEM,
    ) -> models.Booking:
        self._validate(new_range)
        store = self._store_factory(db)
        record = self.get(db, record_id)
        tutor_key, student_key = _keys(record)
        with self.locks.hold(tutor_key, student_key):
            store.refresh(record)
            state = self.effective_state(record)
            if state not in (BookingState.pending, BookingState.confirmed):
                raise InvalidTransitionError(record_id, state.value, "reschedule")
            self._check_conflicts(tutor_key, student_key, new_range, exclude=record_id)
            old_range = record.time_range
            record.starts_at = new_range.start
            record.ends_at = new_range.end
            self._audit(
                store,
                AUDIT_BOOKING_RESCHEDULED,
                record,
                actor,
                previous_starts_at=old_range.start.isoformat(),
                previous_ends_at=old_range.end.isoformat(),
            )
            self._commit(
                store,
                [
                    _IndexOp(False, tutor_key, record_id, old_range),
                    _IndexOp(False, student_key, record_id, old_range),
                    _IndexOp(True, tutor_key, record_id, new_range),
                    _IndexOp(True, student_key, record_id, new_range),
                ],
            )
        logger.info(
            "Booking rescheduled",
            extra={"booking_id": record_id, "starts_at": new_range.start.isoformat()},
        )
        return record

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------
    def rebuild(self, db: Session) -> int:
        with self.locks.exclusive():
            records = self._store_factory(db).load_active()
            count = self.index.rebuild(self._entries(records))
        logger.info("Conflict index rebuilt", extra={"bookings": count})
        return count

    def rebuild_participant(self, db: Session, key: ParticipantKey) -> int:
        with self.locks.hold(key):
            records = self._store_factory(db).load_all_for_participant(key)
            self.index.drop(key)
            for record in records:
                self.index.insert(key, record.id, record.time_range)
        logger.info("Participant index rebuilt", extra={"participant": str(key), "bookings": len(records)})
        return len(records)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _entries(records: Iterable[models.Booking]):
        for record in records:
            tutor_key, student_key = _keys(record)
            yield tutor_key, record.id, record.time_range
            yield student_key, record.id, record.time_range

    def _validate(self, time_range: TimeRange) -> None:
        for validator in self._validators:
            validator(time_range)

    def _check_participants(
        self, db: Session, participants: list[tuple[ParticipantRole, int]]
    ) -> None:
        directory = self._directory_factory(db)
        for role, participant_id in participants:
            if not directory.exists(participant_id, role):
                raise UnknownParticipantError(role.value, participant_id)
        for role, participant_id in participants:
            if not directory.is_active(participant_id, role):
                logger.info(
                    "Inactive participant refused",
                    extra={"role": role.value, "participant_id": participant_id},
                )
                raise InactiveParticipantError(role.value, participant_id)

    def _check_conflicts(
        self,
        tutor_key: ParticipantKey,
        student_key: ParticipantKey,
        time_range: TimeRange,
        exclude: int | None = None,
    ) -> None:
        skip = () if exclude is None else (exclude,)
        for key, error in ((tutor_key, TutorConflictError), (student_key, StudentConflictError)):
            conflicts = self.index.query_overlap(key, time_range, exclude=skip)
            if conflicts:
                windows = [
                    (window.start, window.end)
                    for window in (self.index.get(key, record_id) for record_id in conflicts)
                    if window is not None
                ]
                logger.info(
                    "Booking conflict",
                    extra={"participant": str(key), "conflicts": conflicts},
                )
                raise error(key.id, conflicts, windows)

    def _commit(self, store: BookingStore, ops: list[_IndexOp]) -> None:
        applied: list[_IndexOp] = []
        try:
            for op in ops:
                op.apply(self.index)
                applied.append(op)
            store.commit()
        except Exception:
            for op in reversed(applied):
                op.revert(self.index)
            store.rollback()
            raise

    @staticmethod
    def _audit(
        store: BookingStore,
        action: str,
        record: models.Booking,
        actor: Actor,
        **extra,
    ) -> None:
        payload = {
            "booking_id": record.id,
            "tutor_id": record.tutor_id,
            "student_id": record.student_id,
            "starts_at": record.starts_at.isoformat(),
            "ends_at": record.ends_at.isoformat(),
            "actor": actor.name,
        }
        payload.update(extra)
        store.add_audit(
            models.AuditLog(
                actor_type=actor.type,
                actor_id=actor.id,
                action=action,
                payload=payload,
            )
        )


@lru_cache(maxsize=1)
def get_booking_engine() -> BookingEngine:
    settings = get_settings()
    validators: list[RangeValidator] = []
    if settings.booking_min_minutes is not None or settings.booking_max_minutes is not None:
        validators.append(
            duration_bounds(settings.booking_min_minutes, settings.booking_max_minutes)
        )
    return BookingEngine(
        locks=ParticipantLocks(timeout=settings.booking_lock_timeout_sec),
        validators=validators,
    )


__all__ = [
    "Actor",
    "BookingEngine",
    "SYSTEM",
    "duration_bounds",
    "get_booking_engine",
]
