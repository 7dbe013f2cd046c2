import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_role
from backend.core import config
from backend.crud import appointments as appointments_crud
from backend.crud import availability as availability_crud
from backend.crud import users as users_crud
from backend.database import get_db
from backend.models.appointment import (
    Appointment,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_NO_SHOW,
)
from backend.models.user import User
from backend.scheduling.availability import WEEKDAYS, validate_weekly_template
from backend.scheduling.booking import ensure_status_transition
from backend.scheduling.clock import ensure_utc, to_storage, utcnow
from backend.scheduling.errors import InvalidStateError, NotFoundError, ValidationError
from backend.schemas.appointment import (
    CamelModel,
    DoctorAppointmentListResponse,
    DoctorAppointmentResponse,
    MessageResponse,
)
from backend.schemas.availability import WeeklyAvailabilityResponse

router = APIRouter(tags=['doctor'])

logger = logging.getLogger(__name__)

require_doctor = require_role(users_crud.ROLE_DOCTOR)

DATABASE_UNAVAILABLE = 'Database unavailable. Please try again later.'


class UpdateAvailabilityRequest(BaseModel):
    availability: Any = None


class UpdateProfileRequest(CamelModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    specialty: str | None = None
    about: str | None = None
    contact: str | None = None
    additional_info: str | None = None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().lower()


class DoctorProfileResponse(CamelModel):
    id: int
    name: str
    email: str
    phone: str
    specialty: str
    about: str
    contact: str
    additional_info: str


def _get_own_appointment(db: Session, appointment_id: int, doctor: User) -> Appointment:
    appointment = appointments_crud.get_appointment(db, appointment_id, doctor_id=doctor.id)
    if appointment is None:
        raise NotFoundError('Appointment not found or you are not authorized to modify it.')
    return appointment


def _with_patient_names(db: Session, appointments) -> list[DoctorAppointmentResponse]:
    patients: dict[int, User | None] = {}
    items = []
    for appointment in appointments:
        if appointment.patient_id not in patients:
            patients[appointment.patient_id] = users_crud.get_user(db, appointment.patient_id)
        patient = patients[appointment.patient_id]
        items.append(
            DoctorAppointmentResponse.from_appointment(
                appointment,
                patient_name=patient.name if patient else 'Unknown',
            )
        )
    return items


def _transition(db: Session, appointment: Appointment, target: str, **changes) -> Appointment:
    ensure_status_transition(appointment.status, target)
    try:
        return appointments_crud.update_appointment(db, appointment, status=target, **changes)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to move appointment %s to %s', appointment.id, target)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@router.delete('/appointment/{appointment_id}', response_model=MessageResponse)
def cancel_appointment(
    appointment_id: int,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    appointment = _get_own_appointment(db, appointment_id, current_user)
    _transition(db, appointment, STATUS_CANCELLED)
    logger.info('Appointment %s cancelled by doctor %s', appointment.id, current_user.id)
    return MessageResponse(message='Appointment cancelled successfully')


@router.put('/appointment/no-show/{appointment_id}', response_model=MessageResponse)
def mark_no_show(
    appointment_id: int,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    appointment = _get_own_appointment(db, appointment_id, current_user)
    _transition(db, appointment, STATUS_NO_SHOW, no_show_marked_at=utcnow())
    logger.info('Appointment %s marked as no-show by doctor %s', appointment.id, current_user.id)
    return MessageResponse(
        message=(
            'Appointment marked as no-show successfully. '
            f'Time slot locked for {config.NO_SHOW_LOCK_MINUTES} minutes.'
        )
    )


@router.put('/appointment/complete/{appointment_id}', response_model=MessageResponse)
def mark_completed(
    appointment_id: int,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    appointment = _get_own_appointment(db, appointment_id, current_user)
    if ensure_utc(appointment.start_time) > utcnow():
        raise InvalidStateError('Cannot complete an appointment that has not started.')
    _transition(db, appointment, STATUS_COMPLETED)
    logger.info('Appointment %s completed by doctor %s', appointment.id, current_user.id)
    return MessageResponse(message='Appointment marked as completed successfully')


@router.get('/current-appointment', response_model=DoctorAppointmentResponse)
def get_current_appointment(
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    appointment = appointments_crud.find_current_appointment(db, current_user.id, utcnow())
    if appointment is None:
        raise NotFoundError('No current appointment found.')
    return _with_patient_names(db, [appointment])[0]


@router.get('/past-appointments', response_model=DoctorAppointmentListResponse)
def list_past_appointments(
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    appointments = appointments_crud.list_past_appointments(db, current_user.id, utcnow())
    return DoctorAppointmentListResponse(appointments=_with_patient_names(db, appointments))


@router.get('/upcoming-appointments', response_model=DoctorAppointmentListResponse)
def list_upcoming_appointments(
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    appointments = appointments_crud.list_upcoming_appointments(db, current_user.id, utcnow())
    return DoctorAppointmentListResponse(appointments=_with_patient_names(db, appointments))


@router.get('/my-availability', response_model=WeeklyAvailabilityResponse)
def get_my_availability(
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    template = availability_crud.find_availability(db, current_user.id) or {}
    return WeeklyAvailabilityResponse(
        doctor_id=current_user.id,
        availability={day: list(template.get(day, [])) for day in WEEKDAYS},
    )


@router.post('/update-availability', response_model=MessageResponse)
def update_availability(
    data: UpdateAvailabilityRequest,
    response: Response,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    template = validate_weekly_template(data.availability)

    try:
        created = availability_crud.upsert_availability(db, current_user.id, template)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to store availability for doctor %s', current_user.id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    if created:
        response.status_code = status.HTTP_201_CREATED
        return MessageResponse(message='Availability created successfully')
    return MessageResponse(message='Availability updated successfully')


def _profile_response(doctor: User) -> DoctorProfileResponse:
    return DoctorProfileResponse(
        id=doctor.id,
        name=doctor.name or '',
        email=doctor.email or '',
        phone=doctor.phone or '',
        specialty=doctor.specialty or '',
        about=doctor.about or '',
        contact=doctor.contact or '',
        additional_info=doctor.additional_info or '',
    )


@router.get('/profile', response_model=DoctorProfileResponse)
def get_profile(current_user: User = Depends(require_doctor)):
    return _profile_response(current_user)


@router.put('/profile', response_model=MessageResponse)
def update_profile(
    data: UpdateProfileRequest,
    current_user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    if not data.name or not data.name.strip() or not data.email:
        raise ValidationError('Name and email are required.')

    existing = users_crud.get_user_by_email(db, data.email)
    if existing is not None and existing.id != current_user.id:
        raise ValidationError('Email already in use.')

    doctor = users_crud.get_user(db, current_user.id)
    doctor.name = data.name.strip()
    doctor.email = data.email
    for field in ('phone', 'specialty', 'about', 'contact', 'additional_info'):
        if field in data.model_fields_set:
            setattr(doctor, field, getattr(data, field))
    doctor.updated_at = to_storage(utcnow())

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update profile for doctor %s', current_user.id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    return MessageResponse(message='Profile updated successfully')
