from . import (
    admin,
    availability_service,
    booking_engine,
    calendar_service,
)
__all__ = [
    "admin",
    "availability_service",
    "booking_engine",
    "calendar_service",
]
