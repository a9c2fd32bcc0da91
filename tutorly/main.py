import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api.routes import auth, availability, bookings, calendar_notes, misc, participants
from .db.session import Base, engine, SessionLocal
from .config import get_settings
from .middlewares.logging import LoggingMiddleware
from .services.admin import ensure_admin_exists
from .services.booking_engine import get_booking_engine


logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Tutorly API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(participants.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(availability.router, prefix="/api/v1")
app.include_router(calendar_notes.router, prefix="/api/v1")
app.include_router(misc.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event() -> None:
    Base.metadata.create_all(bind=engine)
    settings = get_settings()
    with SessionLocal() as session:
        ensure_admin_exists(session, settings.default_admin_username, settings.default_admin_password)
        get_booking_engine().rebuild(session)
