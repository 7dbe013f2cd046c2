from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_optional_user
from backend.core import config
from backend.crud import appointments as appointments_crud
from backend.crud import availability as availability_crud
from backend.crud import users as users_crud
from backend.database import get_db
from backend.models.user import User
from backend.scheduling.availability import clinic_day_bounds, resolve_slots
from backend.scheduling.clock import utcnow
from backend.scheduling.conflicts import annotate
from backend.scheduling.errors import NotFoundError, ValidationError
from backend.schemas.availability import (
    DoctorAvailabilityResponse,
    DoctorListItem,
    DoctorSummary,
    SlotResponse,
)

router = APIRouter(tags=['doctors'])


def parse_query_date(value: str | None) -> date:
    if not value:
        raise ValidationError('Date parameter required (YYYY-MM-DD).')
    try:
        return datetime.strptime(value.strip(), '%Y-%m-%d').date()
    except ValueError as exc:
        raise ValidationError('Date must be in YYYY-MM-DD format.') from exc


@router.get('/specialties', response_model=list[str])
def list_specialties(db: Session = Depends(get_db)):
    return users_crud.list_specialties(db)


@router.get('', response_model=list[DoctorListItem])
def list_doctors(
    specialty: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    doctors = users_crud.list_doctors(db, specialty.strip() if specialty else None)
    return [
        DoctorListItem(id=doctor.id, name=doctor.name, specialty=doctor.specialty, email=doctor.email)
        for doctor in doctors
    ]


@router.get('/{doctor_id}/availability', response_model=DoctorAvailabilityResponse)
def get_doctor_availability(
    doctor_id: int,
    date: str | None = Query(default=None),
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    selected_date = parse_query_date(date)

    doctor = users_crud.get_doctor(db, doctor_id)
    if doctor is None:
        raise NotFoundError('Doctor not found.')

    zone = config.clinic_zone()
    day_start, day_end = clinic_day_bounds(selected_date, zone)

    template = availability_crud.find_availability(db, doctor.id)
    slots = resolve_slots(doctor.id, selected_date, template, zone)

    doctor_appointments = appointments_crud.find_doctor_appointments(db, doctor.id, day_start, day_end)
    patient_appointments = []
    if current_user is not None and current_user.role == users_crud.ROLE_PATIENT:
        patient_appointments = appointments_crud.find_patient_appointments(
            db, current_user.id, day_start, day_end
        )

    annotate(slots, doctor_appointments, patient_appointments, utcnow())

    return DoctorAvailabilityResponse(
        doctor=DoctorSummary(id=doctor.id, name=doctor.name, specialty=doctor.specialty),
        date=selected_date,
        timezone=config.CLINIC_TIMEZONE,
        slots=[
            SlotResponse(start=slot.start, end=slot.end, available=slot.available, time=slot.label)
            for slot in slots
        ],
    )
