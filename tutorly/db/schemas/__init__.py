from .booking import Booking, BookingCreate, BookingCancel, BookingReschedule, TimeSlot
from .participant import (
    ParticipantStatusUpdate,
    Student,
    StudentCreate,
    Tutor,
    TutorCreate,
)
from .calendar_note import CalendarNote, CalendarNoteCreate
