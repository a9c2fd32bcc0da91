from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import DateTime, Enum, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column
from ..session import Base
from .participant import ParticipantStatus


class TutorRole(str, PyEnum):
    generic = "generic"
    staff = "staff"


class Tutor(Base):
    __tablename__ = "tutors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[ParticipantStatus] = mapped_column(
        Enum(ParticipantStatus), default=ParticipantStatus.active
    )
    role: Mapped[TutorRole] = mapped_column(Enum(TutorRole), default=TutorRole.generic)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
