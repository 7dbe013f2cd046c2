from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.models.appointment import (
    Appointment,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_NO_SHOW,
    STATUS_UPCOMING,
)
from backend.scheduling.clock import to_storage, utcnow
from backend.scheduling.errors import ConflictError

PAST_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW)


def find_doctor_appointments(db: Session, doctor_id: int, start: datetime, end: datetime) -> Sequence[Appointment]:
    """Non-cancelled appointments of a doctor overlapping [start, end)."""
    return db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.start_time < to_storage(end),
        Appointment.end_time > to_storage(start),
        Appointment.status != STATUS_CANCELLED,
    ).order_by(Appointment.start_time.asc()).all()


def find_patient_appointments(db: Session, patient_id: int, start: datetime, end: datetime) -> Sequence[Appointment]:
    return db.query(Appointment).filter(
        Appointment.patient_id == patient_id,
        Appointment.start_time < to_storage(end),
        Appointment.end_time > to_storage(start),
        Appointment.status != STATUS_CANCELLED,
    ).order_by(Appointment.start_time.asc()).all()


def find_conflict_candidates(
    db: Session,
    *,
    doctor_id: int,
    patient_id: int,
    start: datetime,
    end: datetime,
    exclude_id: Optional[int] = None,
) -> Sequence[Appointment]:
    q = db.query(Appointment).filter(
        or_(Appointment.doctor_id == doctor_id, Appointment.patient_id == patient_id),
        Appointment.start_time < to_storage(end),
        Appointment.end_time > to_storage(start),
        Appointment.status != STATUS_CANCELLED,
    )
    if exclude_id is not None:
        q = q.filter(Appointment.id != exclude_id)
    return q.all()


def get_appointment(
    db: Session,
    appointment_id: int,
    *,
    patient_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
) -> Optional[Appointment]:
    q = db.query(Appointment).filter(Appointment.id == appointment_id)
    if patient_id is not None:
        q = q.filter(Appointment.patient_id == patient_id)
    if doctor_id is not None:
        q = q.filter(Appointment.doctor_id == doctor_id)
    return q.first()


def _commit_or_conflict(db: Session) -> None:
    # The partial unique indexes on (doctor_id, start_time) and
    # (patient_id, start_time) reject a second upcoming booking.
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError('Time slot already booked.') from exc


def insert_appointment(
    db: Session,
    *,
    patient_id: int,
    doctor_id: int,
    start: datetime,
    end: datetime,
    reason: Optional[str] = None,
) -> Appointment:
    appointment = Appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        start_time=to_storage(start),
        end_time=to_storage(end),
        reason=reason,
        status=STATUS_UPCOMING,
        created_at=to_storage(utcnow()),
    )
    db.add(appointment)
    _commit_or_conflict(db)
    db.refresh(appointment)
    return appointment


def update_appointment(db: Session, appointment: Appointment, **changes) -> Appointment:
    for field in ('start_time', 'end_time', 'no_show_marked_at'):
        if changes.get(field) is not None:
            changes[field] = to_storage(changes[field])

    for field, value in changes.items():
        setattr(appointment, field, value)
    appointment.updated_at = to_storage(utcnow())

    _commit_or_conflict(db)
    db.refresh(appointment)
    return appointment


def list_patient_appointments(
    db: Session,
    *,
    patient_id: int,
    status: Optional[str] = None,
    start_from: Optional[datetime] = None,
    start_to: Optional[datetime] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[Sequence[Appointment], int]:
    q = db.query(Appointment).filter(Appointment.patient_id == patient_id)
    if status:
        q = q.filter(Appointment.status == status)
    if start_from is not None:
        q = q.filter(Appointment.start_time >= to_storage(start_from))
    if start_to is not None:
        q = q.filter(Appointment.start_time <= to_storage(start_to))

    total = q.count()
    items = q.order_by(Appointment.start_time.desc()).offset((page - 1) * limit).limit(limit).all()
    return items, total


def find_current_appointment(db: Session, doctor_id: int, now: datetime) -> Optional[Appointment]:
    instant = to_storage(now)
    return db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.start_time <= instant,
        Appointment.end_time > instant,
        Appointment.status == STATUS_UPCOMING,
    ).first()


def list_past_appointments(db: Session, doctor_id: int, now: datetime) -> Sequence[Appointment]:
    return db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.end_time < to_storage(now),
        Appointment.status.in_(PAST_STATUSES),
    ).order_by(Appointment.end_time.desc()).all()


def list_upcoming_appointments(db: Session, doctor_id: int, now: datetime) -> Sequence[Appointment]:
    return db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.start_time >= to_storage(now),
        Appointment.status == STATUS_UPCOMING,
    ).order_by(Appointment.start_time.asc()).all()
