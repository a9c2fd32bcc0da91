from datetime import datetime
from pydantic import BaseModel


class CalendarNoteBase(BaseModel):
    description: str | None = None
    starts_at: datetime
    ends_at: datetime
    creator_id: int


class CalendarNoteCreate(CalendarNoteBase):
    tutor_ids: list[int] = []


class CalendarNote(CalendarNoteBase):
    id: int
    tutor_ids: list[int]
    created_at: datetime | None = None

    class Config:
        from_attributes = True
