from datetime import datetime
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Table, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


calendar_note_tutors = Table(
    "calendar_note_tutors",
    Base.metadata,
    Column("calendar_note_id", ForeignKey("calendar_notes.id", ondelete="CASCADE"), primary_key=True),
    Column("tutor_id", ForeignKey("tutors.id", ondelete="CASCADE"), primary_key=True),
)


class CalendarNote(Base):
    __tablename__ = "calendar_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    description: Mapped[str | None] = mapped_column(Text)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    creator_id: Mapped[int] = mapped_column(ForeignKey("tutors.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    creator = relationship("Tutor")
    tutors = relationship("Tutor", secondary=calendar_note_tutors)

    @property
    def tutor_ids(self) -> list[int]:
        return sorted(tutor.id for tutor in self.tutors)
