from datetime import datetime
from pydantic import BaseModel, Field
from ..models.participant import ParticipantStatus
from ..models.tutor import TutorRole


class TutorCreate(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6)
    role: str = "generic"


class Tutor(BaseModel):
    id: int
    username: str
    status: ParticipantStatus
    role: TutorRole
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class StudentBase(BaseModel):
    name: str
    surname: str
    student_class: str | None = None
    description: str | None = None


class StudentCreate(StudentBase):
    pass


class Student(StudentBase):
    id: int
    status: ParticipantStatus
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ParticipantStatusUpdate(BaseModel):
    status: str
