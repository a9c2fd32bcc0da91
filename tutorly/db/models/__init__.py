from .participant import ParticipantRole, ParticipantStatus
from .tutor import Tutor, TutorRole
from .student import Student
from .booking import Booking, BookingKind, BookingState, ACTIVE_STATES, STORED_STATES
from .calendar_note import CalendarNote, calendar_note_tutors
from .admin_user import AdminUser, AdminRole
from .audit_log import AuditLog, ActorType
