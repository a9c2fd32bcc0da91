import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from tutorly.db.session import Base
from tutorly.db import models


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
    )
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_tutor(db_session):
    counter = {"value": 0}

    def factory(status=models.ParticipantStatus.active):
        counter["value"] += 1
        tutor = models.Tutor(
            username=f"tutor{counter['value']}",
            password_hash="x",
            status=status,
        )
        db_session.add(tutor)
        db_session.commit()
        db_session.refresh(tutor)
        return tutor

    return factory


@pytest.fixture()
def make_student(db_session):
    def factory(status=models.ParticipantStatus.active, name="Anna"):
        student = models.Student(name=name, surname="Rossi", status=status)
        db_session.add(student)
        db_session.commit()
        db_session.refresh(student)
        return student

    return factory
