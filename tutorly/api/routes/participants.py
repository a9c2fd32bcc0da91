import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...api import deps
from ...core import security
from ...db.session import get_db
from ...db import models, schemas

logger = logging.getLogger(__name__)

router = APIRouter(tags=["participants"])


def _parse_status(value: str) -> models.ParticipantStatus:
    try:
        return models.ParticipantStatus(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown status"
        ) from exc


@router.get("/tutors", response_model=list[schemas.Tutor])
def list_tutors(
    status_filter: models.ParticipantStatus | None = None,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "viewer")),
):
    query = db.query(models.Tutor)
    if status_filter is not None:
        query = query.filter(models.Tutor.status == status_filter)
    return query.order_by(models.Tutor.username).all()


@router.post("/tutors", response_model=schemas.Tutor, status_code=status.HTTP_201_CREATED)
def create_tutor(
    payload: schemas.TutorCreate,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin")),
):
    try:
        role = models.TutorRole(payload.role)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail="Unknown tutor role") from exc
    tutor = models.Tutor(
        username=payload.username,
        password_hash=security.get_password_hash(payload.password),
        role=role,
        status=models.ParticipantStatus.active,
    )
    db.add(tutor)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail="Username already taken") from exc
    db.refresh(tutor)
    logger.info("Created tutor '%s'", tutor.username)
    return tutor


@router.get("/tutors/{tutor_id}", response_model=schemas.Tutor)
def get_tutor(
    tutor_id: int,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "viewer")),
):
    tutor = db.get(models.Tutor, tutor_id)
    if not tutor:
        raise HTTPException(status_code=404, detail="Tutor not found")
    return tutor


@router.patch("/tutors/{tutor_id}/status", response_model=schemas.Tutor)
def update_tutor_status(
    tutor_id: int,
    payload: schemas.ParticipantStatusUpdate,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin")),
):
    tutor = db.get(models.Tutor, tutor_id)
    if not tutor:
        raise HTTPException(status_code=404, detail="Tutor not found")
    tutor.status = _parse_status(payload.status)
    db.commit()
    db.refresh(tutor)
    logger.info("Tutor %s status set to %s", tutor.id, tutor.status.value)
    return tutor


@router.get("/students", response_model=list[schemas.Student])
def list_students(
    status_filter: models.ParticipantStatus | None = None,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "viewer")),
):
    query = db.query(models.Student)
    if status_filter is not None:
        query = query.filter(models.Student.status == status_filter)
    return query.order_by(models.Student.surname, models.Student.name).all()


@router.post("/students", response_model=schemas.Student, status_code=status.HTTP_201_CREATED)
def create_student(
    payload: schemas.StudentCreate,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    student = models.Student(**payload.model_dump(), status=models.ParticipantStatus.active)
    db.add(student)
    db.commit()
    db.refresh(student)
    return student


@router.get("/students/{student_id}", response_model=schemas.Student)
def get_student(
    student_id: int,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager", "viewer")),
):
    student = db.get(models.Student, student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@router.patch("/students/{student_id}/status", response_model=schemas.Student)
def update_student_status(
    student_id: int,
    payload: schemas.ParticipantStatusUpdate,
    db: Session = Depends(get_db),
    _: models.AdminUser = Depends(deps.require_roles("admin", "manager")),
):
    student = db.get(models.Student, student_id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    student.status = _parse_status(payload.status)
    db.commit()
    db.refresh(student)
    logger.info("Student %s status set to %s", student.id, student.status.value)
    return student
