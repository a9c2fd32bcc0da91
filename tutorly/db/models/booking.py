from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ...core.time_range import TimeRange, ensure_utc
from ..session import Base
from .participant import ParticipantRole


class BookingState(str, PyEnum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    canceled = "canceled"


# ``completed`` is never written; it is derived from ``ends_at`` at read time.
STORED_STATES = (BookingState.pending, BookingState.confirmed, BookingState.canceled)
ACTIVE_STATES = (BookingState.pending, BookingState.confirmed)


class BookingKind(str, PyEnum):
    lesson = "lesson"
    prenotation = "prenotation"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="ck_booking_range_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kind: Mapped[BookingKind] = mapped_column(Enum(BookingKind), default=BookingKind.prenotation)
    tutor_id: Mapped[int] = mapped_column(ForeignKey("tutors.id", ondelete="CASCADE"), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), index=True)
    creator_id: Mapped[int] = mapped_column(Integer, index=True)
    creator_role: Mapped[ParticipantRole] = mapped_column(
        Enum(ParticipantRole), default=ParticipantRole.tutor
    )
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    state: Mapped[BookingState] = mapped_column(Enum(BookingState), default=BookingState.pending)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    canceled_by: Mapped[str | None] = mapped_column(String(64))
    cancellation_reason: Mapped[str | None] = mapped_column(String(255))

    tutor = relationship("Tutor")
    student = relationship("Student")

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.starts_at, self.ends_at)

    def effective_state(self, now: datetime) -> BookingState:
        if self.state == BookingState.confirmed and ensure_utc(now) >= ensure_utc(self.ends_at):
            return BookingState.completed
        return self.state
