import logging
import math
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_role
from backend.core import config
from backend.crud import appointments as appointments_crud
from backend.crud import availability as availability_crud
from backend.crud import users as users_crud
from backend.database import get_db
from backend.models.appointment import APPOINTMENT_STATUSES, STATUS_CANCELLED
from backend.models.user import User
from backend.scheduling.booking import (
    ensure_reschedulable,
    ensure_status_transition,
    validate_booking,
    validate_reschedule,
)
from backend.scheduling.clock import ensure_utc, normalize_instant, utcnow
from backend.scheduling.errors import NotFoundError, ValidationError
from backend.schemas.appointment import (
    AppointmentResponse,
    MessageResponse,
    Pagination,
    PatientAppointmentListResponse,
    PatientAppointmentResponse,
)

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

require_patient = require_role(users_crud.ROLE_PATIENT)

DATABASE_UNAVAILABLE = 'Database unavailable. Please try again later.'


def _normalize_reason(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_REASON_LENGTH:
        raise ValueError(f'Reason must be {config.MAX_REASON_LENGTH} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    doctor_id: int | None = Field(default=None, alias='doctorId')
    start_date_time: datetime | None = Field(default=None, alias='startDateTime')
    end_date_time: datetime | None = Field(default=None, alias='endDateTime')
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_reason(value)


class RescheduleAppointmentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date_time: datetime | None = Field(default=None, alias='startDateTime')
    end_date_time: datetime | None = Field(default=None, alias='endDateTime')
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_reason(value)


def _conflict_window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start = normalize_instant(start)
    end = normalize_instant(end)
    return min(start, end), max(start, end)


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
):
    if data.doctor_id is None or data.start_date_time is None or data.end_date_time is None:
        raise ValidationError('doctorId, startDateTime, and endDateTime are required.')

    doctor = users_crud.get_doctor(db, data.doctor_id)
    if doctor is None:
        raise NotFoundError('Doctor not found.')

    try:
        window_start, window_end = _conflict_window(data.start_date_time, data.end_date_time)
        existing = appointments_crud.find_conflict_candidates(
            db,
            doctor_id=doctor.id,
            patient_id=current_user.id,
            start=window_start,
            end=window_end,
        )
        start, end = validate_booking(
            doctor.id,
            current_user.id,
            data.start_date_time,
            data.end_date_time,
            existing,
            weekly_availability=availability_crud.find_availability(db, doctor.id),
            clinic_zone=config.clinic_zone(),
            now=utcnow(),
        )

        appointment = appointments_crud.insert_appointment(
            db,
            patient_id=current_user.id,
            doctor_id=doctor.id,
            start=start,
            end=end,
            reason=data.reason,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create appointment for patient %s', current_user.id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info(
        'Appointment %s booked: doctor=%s patient=%s start=%s',
        appointment.id,
        doctor.id,
        current_user.id,
        start.isoformat(),
    )
    return AppointmentResponse.from_appointment(appointment)


@router.get('', response_model=PatientAppointmentListResponse)
def list_my_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    start_from: datetime | None = Query(default=None, alias='from'),
    start_to: datetime | None = Query(default=None, alias='to'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
):
    if status_filter and status_filter not in APPOINTMENT_STATUSES:
        raise ValidationError('Invalid status filter.')

    appointments, total = appointments_crud.list_patient_appointments(
        db,
        patient_id=current_user.id,
        status=status_filter,
        start_from=ensure_utc(start_from) if start_from else None,
        start_to=ensure_utc(start_to) if start_to else None,
        page=page,
        limit=limit,
    )

    doctors: dict[int, User | None] = {}
    items = []
    for appointment in appointments:
        if appointment.doctor_id not in doctors:
            doctors[appointment.doctor_id] = users_crud.get_user(db, appointment.doctor_id)
        doctor = doctors[appointment.doctor_id]
        items.append(
            PatientAppointmentResponse.from_appointment(
                appointment,
                doctor_name=doctor.name if doctor else 'Unknown',
                doctor_specialty=doctor.specialty if doctor else None,
            )
        )

    return PatientAppointmentListResponse(
        appointments=items,
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
):
    appointment = appointments_crud.get_appointment(db, appointment_id, patient_id=current_user.id)
    if appointment is None:
        raise NotFoundError('Appointment not found.')

    ensure_reschedulable(appointment)

    changes = {}
    try:
        if data.start_date_time is not None or data.end_date_time is not None:
            requested_start = data.start_date_time or appointment.start_time
            requested_end = data.end_date_time or (
                ensure_utc(requested_start) + timedelta(minutes=config.SLOT_DURATION_MINUTES)
            )
            window_start, window_end = _conflict_window(requested_start, requested_end)
            existing = appointments_crud.find_conflict_candidates(
                db,
                doctor_id=appointment.doctor_id,
                patient_id=appointment.patient_id,
                start=window_start,
                end=window_end,
                exclude_id=appointment.id,
            )
            start, end = validate_reschedule(
                appointment,
                data.start_date_time,
                data.end_date_time,
                existing,
                weekly_availability=availability_crud.find_availability(db, appointment.doctor_id),
                clinic_zone=config.clinic_zone(),
                now=utcnow(),
            )
            changes['start_time'] = start
            changes['end_time'] = end

        if 'reason' in data.model_fields_set:
            changes['reason'] = data.reason

        if not changes:
            raise ValidationError('No fields to update.')

        appointment = appointments_crud.update_appointment(db, appointment, **changes)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to reschedule appointment %s', appointment_id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info('Appointment %s updated by patient %s: %s', appointment.id, current_user.id, sorted(changes))
    return AppointmentResponse.from_appointment(appointment)


@router.delete('/{appointment_id}', response_model=MessageResponse)
def cancel_appointment(
    appointment_id: int,
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
):
    appointment = appointments_crud.get_appointment(db, appointment_id, patient_id=current_user.id)
    if appointment is None:
        raise NotFoundError('Appointment not found.')

    ensure_status_transition(appointment.status, STATUS_CANCELLED)

    try:
        appointments_crud.update_appointment(db, appointment, status=STATUS_CANCELLED)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to cancel appointment %s', appointment_id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    logger.info('Appointment %s cancelled by patient %s', appointment.id, current_user.id)
    return MessageResponse(message='Appointment cancelled successfully')
