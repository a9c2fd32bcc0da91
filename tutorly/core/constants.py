"""Common application-wide constants."""

# Actor recorded on bookings changed by the engine itself
SYSTEM_ACTOR = "system"

# Audit log actions written on booking transitions
AUDIT_BOOKING_CREATED = "booking_created"
AUDIT_BOOKING_CONFIRMED = "booking_confirmed"
AUDIT_BOOKING_CANCELED = "booking_canceled"
AUDIT_BOOKING_RESCHEDULED = "booking_rescheduled"


__all__ = [
    "SYSTEM_ACTOR",
    "AUDIT_BOOKING_CREATED",
    "AUDIT_BOOKING_CONFIRMED",
    "AUDIT_BOOKING_CANCELED",
    "AUDIT_BOOKING_RESCHEDULED",
]
