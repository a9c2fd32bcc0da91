from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tutorly.api import deps
from tutorly.api.routes import availability, bookings
from tutorly.core.errors import BookingContendedError
from tutorly.db import models
from tutorly.db.session import Base, get_db
from tutorly.services.booking_engine import BookingEngine

DAY = datetime(2030, 1, 7, tzinfo=timezone.utc)


def at(hour: float) -> str:
    return (DAY + timedelta(hours=hour)).isoformat()


def parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@pytest.fixture()
def api_client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    booking_engine = BookingEngine(clock=lambda: datetime(2030, 1, 1, tzinfo=timezone.utc))

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    def override_get_current_admin():
        return models.AdminUser(id=1, username="admin", role="admin")

    test_app = FastAPI()
    test_app.include_router(bookings.router, prefix="/api/v1")
    test_app.include_router(availability.router, prefix="/api/v1")

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[deps.get_current_admin] = override_get_current_admin
    test_app.dependency_overrides[deps.get_engine] = lambda: booking_engine

    db = TestingSessionLocal()
    tutors = [models.Tutor(username=f"tutor{i}", password_hash="x") for i in (1, 2)]
    suspended = models.Tutor(
        username="suspended", password_hash="x", status=models.ParticipantStatus.suspended
    )
    students = [models.Student(name=name, surname="Bianchi") for name in ("Marco", "Giulia")]
    db.add_all([*tutors, suspended, *students])
    db.commit()
    ids = {
        "tutor1": tutors[0].id,
        "tutor2": tutors[1].id,
        "suspended": suspended.id,
        "student10": students[0].id,
        "student20": students[1].id,
    }
    db.close()

    with TestClient(test_app) as client:
        yield client, ids, booking_engine

    test_app.dependency_overrides.clear()


def create(client, tutor_id, student_id, start, end, creator_id=None):
    return client.post(
        "/api/v1/bookings",
        json={
            "tutor_id": tutor_id,
            "student_id": student_id,
            "creator_id": creator_id or tutor_id,
            "starts_at": at(start),
            "ends_at": at(end),
            "description": "Geometry",
        },
    )


def test_booking_lifecycle_over_http(api_client):
    client, ids, _ = api_client

    first = create(client, ids["tutor1"], ids["student10"], 9, 10)
    assert first.status_code == 201
    booking = first.json()
    assert booking["state"] == "pending"

    conflict = create(client, ids["tutor1"], ids["student20"], 9.5, 10.5)
    assert conflict.status_code == 409
    detail = conflict.json()["detail"]
    assert detail["conflicts"][0]["booking_id"] == booking["id"]
    assert detail["conflicts"][0]["starts_at"] == at(9)

    student_conflict = create(client, ids["tutor2"], ids["student10"], 9, 10)
    assert student_conflict.status_code == 409

    confirmed = client.post(f"/api/v1/bookings/{booking['id']}/confirm")
    assert confirmed.status_code == 200
    assert confirmed.json()["state"] == "confirmed"

    slots = client.get(
        f"/api/v1/availability/tutor/{ids['tutor1']}",
        params={"from_dt": at(9), "to_dt": at(11)},
    )
    assert slots.status_code == 200
    assert [(parse(slot["starts_at"]), parse(slot["ends_at"])) for slot in slots.json()] == [
        (DAY + timedelta(hours=10), DAY + timedelta(hours=11))
    ]

    canceled = client.post(f"/api/v1/bookings/{booking['id']}/cancel", json={"reason": "flu"})
    assert canceled.status_code == 200
    assert canceled.json()["state"] == "canceled"
    assert canceled.json()["cancellation_reason"] == "flu"

    again = client.post(f"/api/v1/bookings/{booking['id']}/cancel", json={})
    assert again.status_code == 422

    retry = create(client, ids["tutor1"], ids["student20"], 9.5, 10.5)
    assert retry.status_code == 201


def test_reschedule_over_http(api_client):
    client, ids, _ = api_client
    booking = create(client, ids["tutor1"], ids["student10"], 9, 10).json()
    create(client, ids["tutor1"], ids["student20"], 12, 13)

    blocked = client.post(
        f"/api/v1/bookings/{booking['id']}/reschedule",
        json={"starts_at": at(12.5), "ends_at": at(13.5)},
    )
    assert blocked.status_code == 409

    moved = client.post(
        f"/api/v1/bookings/{booking['id']}/reschedule",
        json={"starts_at": at(14), "ends_at": at(15)},
    )
    assert moved.status_code == 200
    fetched = client.get(f"/api/v1/bookings/{booking['id']}").json()
    assert fetched["starts_at"] == moved.json()["starts_at"]


def test_request_errors_are_mapped(api_client):
    client, ids, _ = api_client

    assert create(client, ids["tutor1"], ids["student10"], 10, 10).status_code == 422
    assert create(client, ids["suspended"], ids["student10"], 9, 10).status_code == 422
    assert create(client, ids["tutor1"], 999, 9, 10).status_code == 404
    assert client.get("/api/v1/bookings/999").status_code == 404
    assert client.post("/api/v1/bookings/999/confirm").status_code == 404


def test_contended_booking_is_retried_then_reported(api_client, monkeypatch):
    client, ids, booking_engine = api_client
    calls = []

    def always_contended(*_args, **_kwargs):
        calls.append(1)
        raise BookingContendedError("busy")

    monkeypatch.setattr(booking_engine, "create", always_contended)

    response = create(client, ids["tutor1"], ids["student10"], 9, 10)

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert len(calls) == 3


def test_list_bookings_filters(api_client):
    client, ids, _ = api_client
    first = create(client, ids["tutor1"], ids["student10"], 9, 10).json()
    create(client, ids["tutor2"], ids["student20"], 9, 10)
    client.post(f"/api/v1/bookings/{first['id']}/confirm")

    by_tutor = client.get("/api/v1/bookings", params={"tutor_id": ids["tutor1"]}).json()
    pending = client.get("/api/v1/bookings", params={"state": "pending"}).json()
    windowed = client.get(
        "/api/v1/bookings", params={"from_dt": at(10), "to_dt": at(12)}
    ).json()

    assert [item["id"] for item in by_tutor] == [first["id"]]
    assert [item["tutor_id"] for item in pending] == [ids["tutor2"]]
    assert windowed == []


def test_common_availability(api_client):
    client, ids, _ = api_client
    create(client, ids["tutor1"], ids["student20"], 9, 10)
    create(client, ids["tutor2"], ids["student10"], 11, 12)

    response = client.get(
        "/api/v1/availability/common",
        params={
            "tutor_id": ids["tutor1"],
            "student_id": ids["student10"],
            "from_dt": at(8),
            "to_dt": at(13),
        },
    )

    assert response.status_code == 200
    assert len(response.json()) == 3


def test_invalid_availability_window(api_client):
    client, ids, _ = api_client

    response = client.get(
        f"/api/v1/availability/student/{ids['student10']}",
        params={"from_dt": at(10), "to_dt": at(9)},
    )

    assert response.status_code == 422


def test_list_bookings_pagination_and_zero_filters(api_client):
    client, ids, _ = api_client
    created = [
        create(client, ids["tutor1"], ids["student10"], hour, hour + 1).json()["id"]
        for hour in (9, 10, 11)
    ]

    first_page = client.get("/api/v1/bookings", params={"limit": 2}).json()
    second_page = client.get("/api/v1/bookings", params={"skip": 2, "limit": 2}).json()
    nobody = client.get("/api/v1/bookings", params={"tutor_id": 0}).json()
    too_large = client.get("/api/v1/bookings", params={"limit": 1000})

    assert [item["id"] for item in first_page + second_page] == created
    assert nobody == []
    assert too_large.status_code == 422


def test_reindex_rebuilds_from_database(api_client):
    client, ids, booking_engine = api_client
    booking = create(client, ids["tutor1"], ids["student10"], 9, 10).json()
    booking_engine.index.clear()

    response = client.post("/api/v1/bookings/reindex")
    clash = create(client, ids["tutor1"], ids["student20"], 9, 10)

    assert response.status_code == 200
    assert response.json()["indexed"] == 2
    assert clash.status_code == 409
    assert clash.json()["detail"]["conflicts"][0]["booking_id"] == booking["id"]
