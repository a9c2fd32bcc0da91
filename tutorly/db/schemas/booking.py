from datetime import datetime
from pydantic import BaseModel, Field
from ..models.booking import BookingKind, BookingState
from ..models.participant import ParticipantRole


class BookingBase(BaseModel):
    tutor_id: int
    student_id: int
    creator_id: int
    starts_at: datetime
    ends_at: datetime
    description: str | None = None


class BookingCreate(BookingBase):
    kind: str = "prenotation"
    creator_role: str = "tutor"


class BookingReschedule(BaseModel):
    starts_at: datetime
    ends_at: datetime


class BookingCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=255)


class Booking(BookingBase):
    id: int
    kind: BookingKind
    creator_role: ParticipantRole
    state: BookingState
    created_at: datetime
    confirmed_at: datetime | None = None
    canceled_at: datetime | None = None
    canceled_by: str | None = None
    cancellation_reason: str | None = None

    class Config:
        from_attributes = True


class TimeSlot(BaseModel):
    starts_at: datetime
    ends_at: datetime
